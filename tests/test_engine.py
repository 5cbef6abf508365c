import asyncio
from datetime import date, datetime, timedelta

from fakes import FakeCapability, FakeToneOutput, drain, make_prayer_times

from azan_alarm.engine.engine import TEST_ALERT_TITLE, AlarmEngine
from azan_alarm.engine.matcher import TriggerSource
from azan_alarm.engine.notifier import NotificationDispatcher
from azan_alarm.engine.state import EngineState
from azan_alarm.engine.tone import ToneEngine, ToneState
from azan_alarm.plugins.alarms.models import Alarm
from azan_alarm.plugins.prayer.prayer_base import NextPrayer
from azan_alarm.plugins.settings.models import DEFAULT_SETTINGS

DAY = date(2024, 3, 15)


class FakePrayerProvider:
    def __init__(self, fail=False):
        self.fail = fail

    def get_today_prayer_times(self):
        if self.fail:
            raise ConnectionError("api down")
        return make_prayer_times(DAY)

    def get_next_prayer(self):
        if self.fail:
            raise ConnectionError("api down")
        times = make_prayer_times(DAY)
        return NextPrayer("dhuhr", times.dhuhr, 3600)


class FakeAlarmService:
    def __init__(self, alarms=()):
        self.alarms = list(alarms)

    def get_alarms(self):
        return list(self.alarms)


class FakeSettingsService:
    def __init__(self, settings=DEFAULT_SETTINGS):
        self.settings = settings

    def get_settings(self):
        return self.settings


class BrokenTone(ToneEngine):
    def start(self, sound_path=""):
        raise RuntimeError("tone exploded")


class BrokenDispatcher(NotificationDispatcher):
    def dispatch(self, title, body, vibrate=False):
        raise RuntimeError("dispatcher exploded")


def make_engine(alarms=(), settings=DEFAULT_SETTINGS, output=None, capability=None, tone_cls=ToneEngine,
                dispatcher_cls=NotificationDispatcher, audio_enabled=True):
    output = output or FakeToneOutput()
    capability = capability or FakeCapability()
    state = EngineState(FakePrayerProvider(), FakeAlarmService(alarms), FakeSettingsService(settings))
    engine = AlarmEngine(
        state,
        tone_cls(lambda: output),
        dispatcher_cls(capability),
        audio_enabled=audio_enabled,
    )
    return engine, output, capability


def at(hh_mm, second=0):
    hour, minute = map(int, hh_mm.split(":"))
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute, second)


def test_refresh_all_loads_snapshots():
    alarm = Alarm(id=1, prayer="fajr", offset_minutes=-10)
    engine, _, _ = make_engine(alarms=[alarm])

    asyncio.run(engine.state.refresh_all())
    snapshot = engine.state.snapshot()
    assert snapshot.prayer_times == make_prayer_times(DAY)
    assert snapshot.next_prayer.prayer == "dhuhr"
    assert snapshot.alarms == (alarm,)
    assert snapshot.settings == DEFAULT_SETTINGS


def test_failed_refresh_keeps_previous_snapshot():
    engine, _, _ = make_engine()
    asyncio.run(engine.state.refresh_prayer_data())
    engine.state.prayer_provider.fail = True
    asyncio.run(engine.state.refresh_prayer_data())
    assert engine.state.prayer_times == make_prayer_times(DAY)
    assert engine.state.next_prayer.prayer == "dhuhr"


def test_trigger_plays_tone_and_notifies():
    engine, output, capability = make_engine()

    async def scenario():
        await engine.state.refresh_all()
        event = engine.on_tick(at("05:00", 1))
        await drain()
        return event

    event = asyncio.run(scenario())
    assert event.source == TriggerSource.BUILTIN
    assert len(output.voices) == 1
    assert capability.sent[0]["title"] == "Fajr prayer time"
    assert capability.sent[0]["body"] == "At Fajr time"
    assert engine.last_event == event


def test_trigger_fires_once_per_minute():
    engine, output, capability = make_engine()

    async def scenario():
        await engine.state.refresh_all()
        for second in range(0, 60, 5):
            engine.on_tick(at("05:00", second))
        await drain()

    asyncio.run(scenario())
    assert len(output.voices) == 1
    assert len(capability.sent) == 1


def test_custom_alarm_uses_its_label_and_sound(tmp_path):
    sound = tmp_path / "beep.wav"
    sound.write_bytes(b"RIFF")
    alarm = Alarm(id=7, prayer="fajr", offset_minutes=-10, label="Wake up", sound_path=str(sound))
    engine, output, capability = make_engine(alarms=[alarm])

    async def scenario():
        await engine.state.refresh_all()
        engine.on_tick(at("04:50"))
        await drain()

    asyncio.run(scenario())
    assert output.voices[0].kind == "file"
    assert capability.sent[0]["title"] == "Fajr alarm"
    assert capability.sent[0]["body"] == "Wake up"


def test_audio_disabled_still_notifies():
    engine, output, capability = make_engine(audio_enabled=False)

    async def scenario():
        await engine.state.refresh_all()
        engine.on_tick(at("12:30"))
        await drain()

    asyncio.run(scenario())
    assert output.voices == []
    assert len(capability.sent) == 1


def test_tone_failure_does_not_block_notification():
    engine, _, capability = make_engine(tone_cls=BrokenTone)

    async def scenario():
        await engine.state.refresh_all()
        engine.on_tick(at("12:30"))
        await drain()

    asyncio.run(scenario())
    assert len(capability.sent) == 1


def test_notification_failure_does_not_block_tone():
    engine, output, _ = make_engine(dispatcher_cls=BrokenDispatcher)

    async def scenario():
        await engine.state.refresh_all()
        engine.on_tick(at("12:30"))
        await drain()

    asyncio.run(scenario())
    assert len(output.voices) == 1


def test_audio_failure_does_not_block_notification():
    engine, _, capability = make_engine(output=FakeToneOutput(fail_play=True))

    async def scenario():
        await engine.state.refresh_all()
        engine.on_tick(at("12:30"))
        await drain()
        assert engine.tone.state == ToneState.IDLE

    asyncio.run(scenario())
    assert len(capability.sent) == 1


def test_stop_leaves_tone_playing_until_stop_tone():
    engine, output, _ = make_engine()

    async def scenario():
        await engine.state.refresh_all()
        engine.start()
        assert engine.running
        engine.on_tick(at("12:30"))
        await drain()
        engine.stop()
        assert not engine.running
        assert engine.tone.state == ToneState.PLAYING
        engine.stop_tone()
        assert engine.tone.state == ToneState.IDLE

    asyncio.run(scenario())
    assert output.voices[0].stopped


def test_test_alert():
    engine, output, capability = make_engine()

    async def scenario():
        engine.test_alert()
        await drain()

    asyncio.run(scenario())
    assert len(output.voices) == 1
    assert capability.sent[0]["title"] == TEST_ALERT_TITLE
    # Test alerts do not consume the minute guard
    assert engine.guard.minute == ""


def test_countdown_zero_refreshes_next_prayer():
    engine, _, _ = make_engine()
    engine.countdown.clock = lambda: at("12:30") + timedelta(seconds=1)

    async def scenario():
        await engine.state.refresh_all()
        engine.state.next_prayer = NextPrayer("dhuhr", at("12:30"), 0)
        engine.state.prayer_provider.get_next_prayer = lambda: NextPrayer("asr", at("15:45"), 0)
        engine.countdown.tick()
        await drain()

    asyncio.run(scenario())
    assert engine.state.next_prayer.prayer == "asr"


def test_status():
    alarm = Alarm(id=3, prayer="fajr", offset_minutes=-10)
    engine, _, _ = make_engine(alarms=[alarm], settings=DEFAULT_SETTINGS._replace(enable_notifications=False))

    async def scenario():
        await engine.state.refresh_all()
        engine.on_tick(at("04:50"))
        await drain()
        return engine.status()

    status = asyncio.run(scenario())
    assert status["running"] is False
    assert status["tone"] == ToneState.PLAYING
    assert status["last_trigger_minute"] == "04:50"
    assert status["last_trigger"]["alarm_id"] == 3
    assert status["last_trigger"]["label"] == "10 min before Fajr"
    assert status["next_prayer"]["prayer"] == "dhuhr"
    assert status["alarms"] == 1


def test_vibration_follows_alarm_flag_and_global_setting():
    quiet = Alarm(id=1, prayer="fajr", offset_minutes=-10, vibration_enabled=False)
    buzzing = Alarm(id=2, prayer="dhuhr", offset_minutes=-10, vibration_enabled=True)

    def sent_vibrate(settings):
        engine, _, capability = make_engine(alarms=[quiet, buzzing], settings=settings)

        async def scenario():
            await engine.state.refresh_all()
            for minute in ("04:50", "12:20", "15:45"):
                engine.on_tick(at(minute))
                await drain()

        asyncio.run(scenario())
        return [p["vibrate"] for p in capability.sent]

    assert sent_vibrate(DEFAULT_SETTINGS) == [False, True, True]
    assert sent_vibrate(DEFAULT_SETTINGS._replace(enable_vibration=False)) == [False, False, False]
