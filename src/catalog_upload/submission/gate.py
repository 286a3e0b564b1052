"""Transactional submission of a product draft.

State machine for one draft:

    idle -> validating -> (uploading) -> submitting -> submitted
                 \\             \\              \\
                  +-------------+--------------+--> editable (with error)

``submitted`` is terminal; ``editable`` accepts any number of new submits.
"""

import asyncio
from enum import Enum
from typing import Optional

from catalog_upload.core import get_logger
from catalog_upload.core.config import DraftPolicy
from catalog_upload.core.errors import (
    Aborted,
    SubmissionClosed,
    SubmissionInProgress,
    ValidationFailure,
)
from catalog_upload.product.form import FieldValidationError, ProductForm
from catalog_upload.submission.record_store import RecordStore
from catalog_upload.upload.coordinator import BatchUploadCoordinator

logger = get_logger(__name__)


class GateState(str, Enum):
    """States of the submission gate."""
    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    EDITABLE = "editable"


class SubmissionGate:
    """Combines the form and the uploaded assets into one record creation.

    The gate owns nothing but its in-flight flag: the form and the batch
    coordinator are borrowed to build a single outbound payload.
    """

    def __init__(
        self,
        form: ProductForm,
        coordinator: BatchUploadCoordinator,
        record_store: RecordStore,
        draft_policy: DraftPolicy = DraftPolicy.PRESERVE,
    ):
        """Initialize the gate for one draft.

        Args:
            form: Non-asset fields of the draft
            coordinator: Batch holding the draft's assets
            record_store: Destination of the finished payload
            draft_policy: Reset or keep the draft after a successful submit
        """
        self.form = form
        self.coordinator = coordinator
        self.record_store = record_store
        self.draft_policy = DraftPolicy(draft_policy)

        self.state = GateState.IDLE
        self.history: list[GateState] = [GateState.IDLE]
        self.record_id: Optional[str] = None
        self.last_error: Optional[Exception] = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def can_submit(self) -> bool:
        """Whether the submit action should be enabled."""
        return (
            not self._in_flight
            and self.state != GateState.SUBMITTED
            and self.coordinator.has_assets()
        )

    async def submit(self) -> str:
        """Validate, upload if needed, and create the record exactly once.

        Returns:
            Identifier of the created record

        Raises:
            SubmissionInProgress: A submission is already running
            SubmissionClosed: This draft was already submitted
            ValidationFailure: Invalid fields, no assets, or a failed batch
            RecordStoreFailure: The record store refused or was unreachable
        """
        if self.state == GateState.SUBMITTED:
            raise SubmissionClosed("Draft was already submitted", state=self.state.value)
        if self._in_flight:
            raise SubmissionInProgress("A submission is already in flight", state=self.state.value)

        self._in_flight = True
        try:
            record_id = await self._submit()
        except asyncio.CancelledError as e:
            self.last_error = Aborted("Submission cancelled", cause=e)
            self._transition(GateState.EDITABLE)
            logger.warning("submission_cancelled", state=self.history[-2].value)
            raise
        except Exception as e:
            self.last_error = e
            self._transition(GateState.EDITABLE)
            logger.warning("submission_failed", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            self._in_flight = False

        self.record_id = record_id
        self.last_error = None
        self._transition(GateState.SUBMITTED)
        logger.info(
            "submission_completed",
            record_id=record_id,
            draft_policy=self.draft_policy.value,
        )
        if self.draft_policy == DraftPolicy.RESET:
            self.form.reset()
            self.coordinator.reset()
        return record_id

    async def _submit(self) -> str:
        self._transition(GateState.VALIDATING)

        errors = self.form.validate()
        if not self.coordinator.has_assets():
            errors.append(FieldValidationError("images", "At least one image is required"))
        if errors:
            raise ValidationFailure(
                "Invalid fields: " + ", ".join(e.field_name for e in errors),
                field_errors=errors,
            )

        images = self.coordinator.ordered_urls()
        if images is None:
            images = await self._upload()

        draft = self.form.to_draft(images)

        self._transition(GateState.SUBMITTING)
        return await self.record_store.create_product(draft)

    async def _upload(self) -> list[str]:
        self._transition(GateState.UPLOADING)
        outcome = await self.coordinator.run_batch()
        images = self.coordinator.ordered_urls()
        if outcome.succeeded and images:
            return images

        failed = sorted(outcome.failures)
        errors = [
            FieldValidationError(
                "images",
                f"Image {index} failed to upload: {outcome.failures[index].message}",
                provided_value=str(index),
            )
            for index in failed
        ] or [FieldValidationError("images", "Images are not uploaded")]
        raise ValidationFailure(
            f"Image upload failed for {failed}" if failed else "Images are not uploaded",
            field_errors=errors,
        )

    def new_draft(self) -> "SubmissionGate":
        """Start a fresh gate over the same form and batch (duplicate workflow)."""
        return SubmissionGate(
            self.form,
            self.coordinator,
            self.record_store,
            draft_policy=self.draft_policy,
        )

    def _transition(self, state: GateState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("gate_transition", state=state.value)
