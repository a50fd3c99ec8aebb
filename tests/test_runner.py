import asyncio
import logging
from datetime import datetime, timedelta

import pytest

from gym_reminders.reminders.offsets import DEFAULT_REMINDER_OFFSETS, ReminderOffset
from gym_reminders.reminders import runner as runner_module
from gym_reminders.reminders.runner import ExpiryReminderRunner, run_expiry_reminder_once

from tests.conftest import IST
from tests.helpers import FakeGateway, FakeStore


class StubPolicy:
    def __init__(self, results):
        self.results = results
        self.calls = []

    async def run_offset(self, days, flag, template_key, *, now=None):
        self.calls.append((days, flag, template_key))
        result = self.results[days]
        if isinstance(result, Exception):
            raise result
        return result


def test_run_all_sums_offsets_in_order():
    policy = StubPolicy({7: 2, 3: 1})

    total = asyncio.run(ExpiryReminderRunner(policy).run_all())

    assert total == 3
    assert policy.calls == [(7, "sevenDay", "reminder_7d"), (3, "threeDay", "reminder_3d")]


def test_failing_offset_does_not_abort_sweep(caplog):
    policy = StubPolicy({7: RuntimeError("bad row"), 3: 4})

    with caplog.at_level(logging.ERROR):
        total = asyncio.run(run_expiry_reminder_once(ExpiryReminderRunner(policy)))

    assert total == 4
    assert [call[0] for call in policy.calls] == [7, 3]
    assert "days=7" in caplog.text


def test_extra_offsets_need_no_new_code():
    offsets = DEFAULT_REMINDER_OFFSETS + (ReminderOffset(days=1, flag="oneDay", template_key="reminder_1d"),)
    policy = StubPolicy({7: 0, 3: 0, 1: 5})

    assert asyncio.run(ExpiryReminderRunner(policy, offsets).run_all()) == 5


def test_offset_flag_must_be_identifier():
    with pytest.raises(ValueError):
        ReminderOffset(days=7, flag="seven.day", template_key="reminder_7d")


class ClosingGateway(FakeGateway):
    instances = []

    def __init__(self, settings=None):
        super().__init__()
        self.closed = False
        ClosingGateway.instances.append(self)

    async def close(self):
        self.closed = True


def test_one_off_sweep_closes_its_gateway(monkeypatch, settings):
    store = FakeStore()
    store.add_member("u1")
    store.add_membership("m1", user_id="u1", end_date=datetime.now(IST) + timedelta(days=7))
    ClosingGateway.instances = []
    monkeypatch.setattr(runner_module, "get_settings", lambda: settings)
    monkeypatch.setattr(runner_module, "get_supabase_client", lambda: store)
    monkeypatch.setattr(runner_module, "SmsGateway", ClosingGateway)

    assert asyncio.run(run_expiry_reminder_once()) == 1

    [gateway] = ClosingGateway.instances
    assert gateway.closed is True
    assert len(gateway.sent) == 1


class RaisingRunner(ExpiryReminderRunner):
    async def run_all(self, *, now=None):
        raise RuntimeError("sweep aborted")


def test_one_off_sweep_closes_gateway_on_error(monkeypatch, settings):
    ClosingGateway.instances = []
    monkeypatch.setattr(runner_module, "get_settings", lambda: settings)
    monkeypatch.setattr(runner_module, "get_supabase_client", lambda: FakeStore())
    monkeypatch.setattr(runner_module, "SmsGateway", ClosingGateway)
    monkeypatch.setattr(runner_module, "ExpiryReminderRunner", RaisingRunner)

    with pytest.raises(RuntimeError):
        asyncio.run(run_expiry_reminder_once())

    assert ClosingGateway.instances[0].closed is True
