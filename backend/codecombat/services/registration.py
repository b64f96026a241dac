"""
Registration Service - the admission pipeline for new registrants.

Pipeline for each submission, in this exact order:
1. Validate fields in form order (name, email, phone, rollNumber, branch)
2. Check uniqueness against the store: email, then phone, then rollNumber
3. Insert the row; a unique-constraint race at insert time is reported
   with the same DuplicateError as step 2
4. (route) Schedule the confirmation email after the response is sent

The uniqueness pre-checks only save a round trip for the common case;
the database constraints remain the real guarantee under concurrency.
Admin edits reuse the same validation plus a digits-only roll number,
and re-check uniqueness against every other row.
"""

import time

from codecombat.errors import DuplicateError, NotFound
from codecombat.models.registrant import Registrant
from codecombat.services.store import RegistrantStore
from codecombat.services.validation import validate_registrant_fields
from codecombat.logging_config import get_logger, log_with_context

logger = get_logger("registration")

# Order in which collisions are reported when several fields clash
UNIQUENESS_ORDER = ("email", "phone", "rollNumber")


class RegistrationService:
    """Admission pipeline and admin mutations over a RegistrantStore."""

    def __init__(self, store: RegistrantStore):
        self.store = store

    def submit(self, data: dict) -> Registrant:
        """
        Admit a new registrant.

        Args:
            data: Raw values keyed name, email, phone, rollNumber, branch

        Returns:
            The persisted Registrant

        Raises:
            ValidationError: First field that breaks a rule
            DuplicateError: First unique field already taken
        """
        start_time = time.time()

        fields = validate_registrant_fields(data)
        self._ensure_unique(fields)
        registrant = self.store.insert(fields)

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "INFO", "Registration accepted",
                         context={"registrant_id": registrant.id},
                         extra_data={"duration_ms": round(duration_ms, 2)})
        return registrant

    def update(self, registrant_id: int, data: dict) -> Registrant:
        """
        Overwrite all five mutable fields of a registrant.

        Raises:
            ValidationError: A field breaks a rule (checked before lookup)
            NotFound: No registrant with this id
            DuplicateError: Another registrant already owns the value
        """
        fields = validate_registrant_fields(data, numeric_roll_number=True)

        registrant = self.store.get(registrant_id)
        if registrant is None:
            raise NotFound()

        self._ensure_unique(fields, exclude_id=registrant_id)
        return self.store.update(registrant, fields)

    def delete(self, registrant_id: int):
        registrant = self.store.get(registrant_id)
        if registrant is None:
            raise NotFound()
        self.store.delete(registrant)

    def _ensure_unique(self, fields: dict, exclude_id: int = None):
        for field in UNIQUENESS_ORDER:
            if self.store.find_by_field(field, fields[field], exclude_id=exclude_id) is not None:
                log_with_context(logger, "INFO", "Duplicate {} rejected".format(field),
                                 context={"field": field, "registrant_id": exclude_id})
                raise DuplicateError(field)
