import sys

import mpv

import settings as settings_module
from api import Api
from miner.loop import EventLoop
from miner.player import MpvPlayer

# key: (Api method, args)
KEY_BINDINGS = {
    'ctrl+s': ('set_timing', ('start',)),
    'ctrl+e': ('set_timing', ('end',)),
    'ctrl+S': ('set_timing_to_sub', ('start',)),
    'ctrl+E': ('set_timing_to_sub', ('end',)),
    'ctrl+c': ('set_starting_line', ()),
    'ctrl+r': ('clear_timings', ()),
    'ctrl+n': ('export_note', ()),
    'ctrl+g': ('export_note', (True,)),
    'ctrl+m': ('update_last_note', ()),
    'ctrl+M': ('update_last_note', (True,)),
    'ctrl+i': ('show_status', ()),
}


def bind_keys(player: mpv.MPV, loop: EventLoop, api: Api) -> None:
    """mpv runs key handlers on its own thread; every action is re-posted onto the loop."""
    for key, (method, args) in KEY_BINDINGS.items():
        action = getattr(api, method)

        def _handler(action=action, args=args):
            loop.call_soon(action, *args)

        player.on_key_press(key)(_handler)


def main():
    if len(sys.argv) < 2:
        print('usage: python main.py <video file or URL>')
        sys.exit(2)

    try:
        config = settings_module.load(write_defaults=True).validate()
    except ValueError as e:
        print(f'[settings] Invalid configuration: {e}')
        sys.exit(1)

    loop = EventLoop()
    player = mpv.MPV(
        input_default_bindings=True,
        input_vo_keyboard=True,
        osc=True,
    )
    api = Api(MpvPlayer(player, loop), settings=config, loop=loop)
    bind_keys(player, loop, api)

    @player.event_callback('file-loaded')
    def _on_file_loaded(_event):
        loop.call_soon(api.start)
        loop.call_soon(api.on_file_loaded)

    @player.event_callback('shutdown')
    def _on_shutdown(_event):
        loop.call_soon(loop.stop)

    player.play(sys.argv[1])
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        pass
    finally:
        api.shutdown()
        player.terminate()


if __name__ == '__main__':
    main()
