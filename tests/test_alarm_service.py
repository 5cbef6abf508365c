from datetime import datetime

import pytest

from azan_alarm.plugins.alarms.models import Alarm, day_name
from azan_alarm.plugins.alarms.service import AlarmNotFoundError, AlarmService


def test_display_label():
    assert Alarm(id=1, prayer="fajr").display_label() == "At Fajr time"
    assert Alarm(id=1, prayer="fajr", offset_minutes=-10).display_label() == "10 min before Fajr"
    assert Alarm(id=1, prayer="isha", offset_minutes=30).display_label() == "30 min after Isha"
    assert Alarm(id=1, prayer="isha", offset_minutes=30, label="Witr").display_label() == "Witr"


def test_day_names():
    assert day_name(1) == "Monday"
    assert day_name(7) == "Sunday"
    assert day_name(0) == ""


def test_create_and_get(db):
    service = AlarmService()
    created = service.create_alarm(Alarm(id=0, prayer="fajr", offset_minutes=-15, repeat_days=(5, 1, 5)))
    assert created.id > 0
    assert created.repeat_days == (1, 5)
    assert created.created_at is not None
    assert service.get_alarm(created.id) == created
    assert service.get_alarms() == [created]


def test_update(db):
    service = AlarmService()
    created = service.create_alarm(Alarm(id=0, prayer="asr"))
    updated = service.update_alarm(created._replace(offset_minutes=20, label="Tea"))
    assert updated.offset_minutes == 20
    assert updated.label == "Tea"
    assert service.get_alarm(created.id).label == "Tea"


def test_delete(db):
    service = AlarmService()
    created = service.create_alarm(Alarm(id=0, prayer="asr"))
    service.delete_alarm(created.id)
    assert service.get_alarms() == []
    with pytest.raises(AlarmNotFoundError):
        service.delete_alarm(created.id)


def test_toggle_and_active_filters(db):
    service = AlarmService()
    fajr = service.create_alarm(Alarm(id=0, prayer="fajr"))
    isha = service.create_alarm(Alarm(id=0, prayer="isha"))
    service.toggle_alarm(fajr.id, False)
    assert [a.id for a in service.get_active_alarms()] == [isha.id]
    assert service.toggle_alarm(fajr.id, True).is_active


def test_missing_alarm_raises(db):
    service = AlarmService()
    with pytest.raises(AlarmNotFoundError):
        service.get_alarm(999)
    with pytest.raises(AlarmNotFoundError):
        service.update_alarm(Alarm(id=999, prayer="fajr"))
    with pytest.raises(AlarmNotFoundError):
        service.toggle_alarm(999, True)


@pytest.mark.parametrize("alarm", [
    Alarm(id=0, prayer="sunrise"),
    Alarm(id=0, prayer="fajr", repeat_days=(0,)),
    Alarm(id=0, prayer="fajr", repeat_days=(8,)),
    Alarm(id=0, prayer="fajr", offset_minutes=2.5),
    Alarm(id=0, prayer="fajr", offset_minutes=True),
    Alarm(id=0, prayer="fajr", offset_minutes=24 * 60 + 1),
    Alarm(id=0, prayer="fajr", offset_minutes=-10**12),
])
def test_invalid_alarms_are_rejected(db, alarm):
    with pytest.raises(ValueError):
        AlarmService().create_alarm(alarm)


def test_change_callbacks(db):
    service = AlarmService()
    changes = []
    service.register_change_callback(lambda: changes.append(1))
    service.register_change_callback(lambda: 1 / 0)
    created = service.create_alarm(Alarm(id=0, prayer="fajr"))
    service.toggle_alarm(created.id, False)
    service.delete_alarm(created.id)
    assert len(changes) == 3


def test_offset_of_a_full_day_is_accepted(db):
    service = AlarmService()
    assert service.create_alarm(Alarm(id=0, prayer="isha", offset_minutes=24 * 60)).offset_minutes == 1440
    assert service.create_alarm(Alarm(id=0, prayer="fajr", offset_minutes=-24 * 60)).offset_minutes == -1440


def test_out_of_range_offset_has_no_alarm_time():
    alarm = Alarm(id=1, prayer="fajr", offset_minutes=10**12)
    assert alarm.actual_alarm_time(datetime(2024, 3, 15, 5, 0)) is None
