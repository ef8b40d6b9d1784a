from miner.player import MpvPlayer
from miner.subtitles import Subtitle


class FakeMpv:
    def __init__(self, **props):
        self.props = props
        self.observers = {}
        self.osd = []

    def __getitem__(self, name):
        if name not in self.props:
            raise RuntimeError(f'property unavailable: {name}')
        return self.props[name]

    def observe_property(self, name, handler):
        self.observers.setdefault(name, []).append(handler)

    def unobserve_property(self, name, handler):
        self.observers[name].remove(handler)

    def show_text(self, text, duration):
        self.osd.append((text, duration))

    def fire(self, name, value):
        for handler in list(self.observers.get(name, [])):
            handler(name, value)


def _mpv(**extra):
    props = {'sub-text': '猫', 'secondary-sub-text': 'cat', 'sub-start': 10.0, 'sub-end': 12.0,
             'time-pos': 11.0, 'filename': 'show.mkv'}
    props.update(extra)
    return FakeMpv(**props)


def test_current_subtitle(loop):
    player = MpvPlayer(_mpv(), loop)
    assert player.current_subtitle() == Subtitle('猫', 'cat', 10.0, 12.0)


def test_current_subtitle_applies_delays(loop):
    player = MpvPlayer(_mpv(**{'sub-delay': 0.5, 'audio-delay': 0.25}), loop)
    sub = player.current_subtitle()
    assert (sub.start, sub.end) == (10.25, 12.25)


def test_no_visible_subtitle(loop):
    player = MpvPlayer(_mpv(**{'sub-text': ''}), loop)
    assert player.current_subtitle() is None


def test_missing_properties(loop):
    player = MpvPlayer(FakeMpv(), loop)
    assert player.time_pos() is None
    assert player.duration() is None
    assert player.filename() == ''
    assert player.path() is None


def test_observer_reposted_onto_loop(loop):
    mpv = _mpv()
    player = MpvPlayer(mpv, loop)
    seen = []

    def on_sub(sub):
        seen.append(sub)

    player.observe_subtitles(on_sub)
    mpv.fire('sub-text', '猫')
    assert seen == []
    loop.run_pending()
    assert seen == [Subtitle('猫', 'cat', 10.0, 12.0)]

    player.unobserve_subtitles(on_sub)
    assert mpv.observers['sub-text'] == []


def test_notify_shows_osd(loop):
    mpv = _mpv()
    MpvPlayer(mpv, loop).notify('Note added.', duration=2)
    assert mpv.osd == [('Note added.', 2000)]
