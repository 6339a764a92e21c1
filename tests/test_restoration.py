import asyncio

import pytest

from gasforms.core.errors import InvalidTransitionError, NetworkError, RemoteStoreError
from gasforms.models.drafts import FormType
from gasforms.services.restoration import DraftRestorationFlow, RestorationState


async def test_no_draft_means_no_prompt(drafts):
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None)

    assert await flow.check() == RestorationState.NO_DRAFT
    assert flow.prompt is None


async def test_found_draft_is_restored_into_form(drafts):
    await drafts.save(FormType.GAS_SAFETY, {"client_name": "A. Smith"})
    restored = []
    flow = DraftRestorationFlow(drafts, FormType.GAS_SAFETY, on_restore=restored.append)

    assert await flow.check() == RestorationState.DRAFT_FOUND
    assert flow.prompt.title == "Unsaved Gas Safety Record draft found"
    assert "gas safety record" in flow.prompt.message

    assert flow.restore() == {"client_name": "A. Smith"}
    assert restored == [{"client_name": "A. Smith"}]
    assert flow.state == RestorationState.RESTORED
    assert flow.prompt is None


async def test_discard_deletes_stored_draft(drafts):
    await drafts.save(FormType.INVOICE, {"invoice_number": "INV-9"})
    discarded = []
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None,
                                on_discard=lambda: discarded.append(True))
    await flow.check()

    assert await flow.discard() is True
    assert flow.state == RestorationState.DISCARDED
    assert discarded == [True]
    assert await drafts.load(FormType.INVOICE) is None


async def test_dismiss_keeps_stored_draft(drafts):
    await drafts.save(FormType.INVOICE, {"invoice_number": "INV-9"})
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None)
    await flow.check()

    flow.dismiss()

    assert flow.state == RestorationState.DISMISSED
    assert await drafts.has(FormType.INVOICE)


async def test_failed_discard_keeps_prompt(drafts, store):
    await drafts.save(FormType.INVOICE, {"invoice_number": "INV-9"})
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None)
    await flow.check()
    store.fail_next("delete_where", RemoteStoreError("down", status=500))

    assert await flow.discard() is False
    assert flow.state == RestorationState.DRAFT_FOUND
    assert flow.prompt is not None
    flow.dismiss()
    assert flow.state == RestorationState.DISMISSED


async def test_load_failure_ends_without_prompt(drafts, store):
    store.fail_next("select_one", NetworkError("offline"))
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None)

    assert await flow.check() == RestorationState.NO_DRAFT


async def test_check_runs_once(drafts, store):
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None)
    await flow.check()
    await drafts.save(FormType.INVOICE, {"invoice_number": "later"})

    assert await flow.check() == RestorationState.NO_DRAFT
    assert store.calls["select_one"] == 1


async def test_only_one_decision_is_accepted(drafts):
    await drafts.save(FormType.INVOICE, {"invoice_number": "INV-9"})
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None)
    await flow.check()
    flow.restore()

    with pytest.raises(InvalidTransitionError):
        flow.dismiss()
    with pytest.raises(InvalidTransitionError):
        await flow.discard()


def test_actions_before_check_are_rejected(drafts):
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=lambda data: None)
    with pytest.raises(InvalidTransitionError):
        flow.restore()


async def test_no_other_decision_while_discard_is_in_flight(drafts, store):
    await drafts.save(FormType.INVOICE, {"invoice_number": "INV-9"})
    restored = []
    flow = DraftRestorationFlow(drafts, FormType.INVOICE, on_restore=restored.append)
    await flow.check()

    gate = asyncio.Event()
    original_delete = store.delete_where

    async def slow_delete(*args):
        await gate.wait()
        return await original_delete(*args)

    store.delete_where = slow_delete
    discarding = asyncio.create_task(flow.discard())
    await asyncio.sleep(0)
    assert flow.state == RestorationState.DISCARDING
    assert flow.prompt is None

    with pytest.raises(InvalidTransitionError):
        flow.restore()
    with pytest.raises(InvalidTransitionError):
        flow.dismiss()
    with pytest.raises(InvalidTransitionError):
        await flow.discard()

    gate.set()
    assert await discarding is True
    assert flow.state == RestorationState.DISCARDED
    assert restored == []
    assert await drafts.load(FormType.INVOICE) is None
