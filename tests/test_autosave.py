import asyncio

import pytest

from gasforms.core.errors import ErrorType, RemoteStoreError
from gasforms.models.drafts import FormType
from gasforms.services.autosave import AutoSaveEngine, AutoSaveStatus
from gasforms.services.drafts import DraftStore


@pytest.fixture
def make_engine(drafts, scheduler, notifier):
    def make(form_data=None, **kwargs):
        kwargs.setdefault("interval", 30)
        return AutoSaveEngine(drafts, FormType.INVOICE, form_data or {"invoice_number": ""},
                              scheduler, notifier=notifier, **kwargs)
    return make


async def test_timer_saves_pending_changes(make_engine, scheduler, store, notifier, drafts):
    saved = []
    engine = make_engine(on_save=lambda: saved.append(True))
    engine.start()
    engine.update({"invoice_number": "INV-1"})
    assert engine.has_unsaved_changes

    await scheduler.advance(30)

    assert store.calls["upsert"] == 1
    assert engine.status == AutoSaveStatus.SAVED
    assert engine.last_saved is not None
    assert not engine.has_unsaved_changes
    assert saved == [True]
    assert [t.title for t in notifier.history] == ["Draft saved"]
    assert await drafts.load(FormType.INVOICE) == {"invoice_number": "INV-1"}


async def test_tick_without_changes_does_not_save(make_engine, scheduler, store):
    engine = make_engine({"invoice_number": "INV-1"})
    engine.start()

    await scheduler.advance(90)

    assert store.calls["upsert"] == 0
    assert engine.status == AutoSaveStatus.IDLE


async def test_unchanged_data_is_saved_once(make_engine, scheduler, store):
    engine = make_engine()
    engine.start()
    engine.update({"invoice_number": "INV-1"})

    await scheduler.advance(120)

    assert store.calls["upsert"] == 1


async def test_failure_is_reported_and_retried_next_tick(make_engine, scheduler, store, notifier):
    errors = []
    engine = make_engine(on_error=errors.append)
    engine.start()
    engine.update({"invoice_number": "INV-1"})
    store.fail_next("upsert", RemoteStoreError("boom", status=503))

    await scheduler.advance(30)

    assert engine.status == AutoSaveStatus.ERROR
    assert engine.last_error.type == ErrorType.SERVER
    assert engine.has_unsaved_changes
    assert engine.running
    assert [e.type for e in errors] == [ErrorType.SERVER]
    assert notifier.history[-1].title == "Auto-save failed"

    await scheduler.advance(30)

    assert engine.status == AutoSaveStatus.SAVED
    assert engine.last_error is None
    assert store.calls["upsert"] == 2


async def test_close_flushes_unsaved_changes_exactly_once(make_engine, scheduler, store):
    engine = make_engine()
    engine.start()
    engine.update({"invoice_number": "INV-1"})

    await engine.close()
    await engine.close()
    await scheduler.advance(300)

    assert store.calls["upsert"] == 1
    assert not engine.running
    assert scheduler.active_jobs == 0


async def test_close_without_changes_does_not_save(make_engine, store):
    engine = make_engine()
    engine.start()
    await engine.close()
    assert store.calls["upsert"] == 0


async def test_disabled_engine_never_saves(make_engine, scheduler, store):
    engine = make_engine(enabled=False)
    engine.start()
    engine.update({"invoice_number": "INV-1"})

    await scheduler.advance(60)
    assert await engine.save_now() is False
    await engine.close()

    assert store.calls["upsert"] == 0
    assert scheduler.active_jobs == 0


async def test_enable_and_disable_toggle_timer(make_engine, scheduler, store):
    engine = make_engine(enabled=False)
    engine.update({"invoice_number": "INV-1"})

    engine.enable()
    assert engine.running
    await scheduler.advance(30)
    assert store.calls["upsert"] == 1

    engine.disable()
    engine.update({"invoice_number": "INV-2"})
    await scheduler.advance(60)
    assert store.calls["upsert"] == 1
    assert not engine.running


async def test_meaningless_changes_are_marked_synced(make_engine, scheduler, store, notifier):
    engine = make_engine()
    engine.start()
    engine.update({"invoice_number": "   "})

    await scheduler.advance(30)

    assert store.calls["upsert"] == 0
    assert engine.status == AutoSaveStatus.IDLE
    assert not engine.has_unsaved_changes
    assert notifier.history == []


async def test_mark_saved_clears_unsaved_state(make_engine, store):
    engine = make_engine()
    engine.update({"invoice_number": "INV-1"})
    engine.mark_saved()

    assert not engine.has_unsaved_changes
    await engine.close()
    assert store.calls["upsert"] == 0


async def test_concurrent_saves_of_same_snapshot_write_once(make_engine, store):
    engine = make_engine()
    engine.update({"invoice_number": "INV-1"})

    results = await asyncio.gather(engine.save_now(), engine.save_now())

    assert sorted(results) == [False, True]
    assert store.calls["upsert"] == 1


async def test_edit_during_inflight_save_is_saved_after_it(make_engine, store, drafts):
    gate = asyncio.Event()
    original_upsert = store.upsert

    async def slow_upsert(*args):
        await gate.wait()
        return await original_upsert(*args)

    store.upsert = slow_upsert
    engine = make_engine()
    engine.update({"invoice_number": "INV-1"})
    first = asyncio.create_task(engine.save_now())
    await asyncio.sleep(0)
    assert engine.is_auto_saving

    engine.update({"invoice_number": "INV-2"})
    second = asyncio.create_task(engine.save_now())
    await asyncio.sleep(0)
    gate.set()

    assert await asyncio.gather(first, second) == [True, True]
    assert await drafts.load(FormType.INVOICE) == {"invoice_number": "INV-2"}
    assert not engine.has_unsaved_changes


async def test_signed_out_user_is_never_saved(store, scheduler):
    engine = AutoSaveEngine(DraftStore(store, None), FormType.GAS_SAFETY, {}, scheduler)
    engine.start()
    engine.update({"client_name": "A"})

    await scheduler.advance(30)

    assert sum(store.calls.values()) == 0
    assert engine.status == AutoSaveStatus.IDLE
