import dataclasses

import pytest

from app.services.result import ErrorCode, Result


class TestResult:
    def test_success(self):
        result = Result.success({"deleted": 3})
        assert result.ok is True
        assert result.value == {"deleted": 3}
        assert result.error is None
        assert bool(result) is True

    def test_failure_carries_code(self):
        result = Result.failure("Backup not found: x.json", ErrorCode.BACKUP_NOT_FOUND)
        assert result.ok is False
        assert result.error_code is ErrorCode.BACKUP_NOT_FOUND
        assert result.error_code == "backup_not_found"
        assert bool(result) is False

    def test_from_exception_keeps_type_name(self):
        result = Result.from_exception(OSError("disk full"), ErrorCode.BACKUP_WRITE_FAILED)
        assert result.error == "OSError: disk full"
        assert result.error_code == ErrorCode.BACKUP_WRITE_FAILED

    def test_is_immutable(self):
        result = Result.success(1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.ok = False
