"""
Turn extracted fields into the canonical VerificationResult.
"""

import logging
from typing import Any, Dict, List, Mapping

from pydantic.alias_generators import to_camel

from payverify.models.verification import CANONICAL_FIELDS, OPTIONAL_FIELDS, VerificationResult
from payverify.services.providers import ProviderProfile
from payverify.utils.errors import FieldsIncomplete

logger = logging.getLogger(__name__)


class ResultNormalizer:
    """Decides whether a provider's extraction counts as verified."""

    def missing_fields(self, profile: ProviderProfile, fields: Mapping[str, Any]) -> List[str]:
        return [name for name in profile.mandatory_fields if fields.get(name) is None]

    def normalize(self, profile: ProviderProfile, fields: Mapping[str, Any]) -> VerificationResult:
        """
        Build the successful result.

        Absent optional fields stay None; nothing is defaulted.

        Raises:
            FieldsIncomplete: a mandatory field is absent (names are camelCase)
        """
        missing = self.missing_fields(profile, fields)
        if missing:
            logger.warning("Mandatory fields missing", extra={
                "provider": profile.provider.value,
                "missing": missing,
            })
            raise FieldsIncomplete([to_camel(name) for name in missing])

        values: Dict[str, Any] = {
            name: fields.get(name)
            for name in CANONICAL_FIELDS + OPTIONAL_FIELDS
        }
        return VerificationResult(success=True, provider=profile.provider, **values)
