"""Tests for the JSON payload conversion of report DTOs."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from consolidation_api.serializers import to_json_payload
from consolidation_modules.statements import ColumnHeader, ScopeKind


class TestToJsonPayload:
    def test_types(self):
        uid = UUID("12345678-1234-5678-1234-567812345678")
        payload = to_json_payload({
            "amount": Decimal("1.50"),
            "id": uid,
            "kind": ScopeKind.ENTITY,
            "at": datetime(2025, 1, 1, tzinfo=timezone.utc),
            "items": (1, None, True),
            "header": ColumnHeader("k", "L"),
        })

        assert payload == {
            "amount": "1.50",
            "id": "12345678-1234-5678-1234-567812345678",
            "kind": "entity",
            "at": "2025-01-01T00:00:00+00:00",
            "items": [1, None, True],
            "header": {"key": "k", "label": "L", "full_name": ""},
        }

    def test_uuid_keys_become_strings(self):
        uid = UUID("12345678-1234-5678-1234-567812345678")
        assert to_json_payload({uid: Decimal("-0.000000001")}) == {
            str(uid): "-1E-9",
        }
