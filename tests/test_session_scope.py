import unittest
from unittest.mock import AsyncMock, patch

from payroll.db import get_async_session
from payroll.errors import PayrollValidationError


class TestSessionScope(unittest.IsolatedAsyncioTestCase):
    def _session_factory(self):
        session = AsyncMock()
        return session, patch("payroll.db.get_sessionmaker", return_value=lambda: session)

    async def test_error_inside_block_rolls_back(self):
        session, factory = self._session_factory()

        with factory, self.assertLogs("payroll.db", level="ERROR") as logs:
            with self.assertRaises(PayrollValidationError):
                async with get_async_session() as s:
                    self.assertIs(s, session)
                    await s.flush()
                    raise PayrollValidationError("invalid_amount", "bad")

        session.rollback.assert_awaited_once()
        session.close.assert_awaited_once()
        session.commit.assert_not_awaited()
        self.assertIn("rollback", logs.output[0])

    async def test_clean_block_commits(self):
        session, factory = self._session_factory()

        with factory:
            async with get_async_session() as s:
                await s.flush()

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()
        session.close.assert_awaited_once()

    async def test_failed_commit_is_rolled_back(self):
        session, factory = self._session_factory()
        session.commit.side_effect = RuntimeError("deadlock detected")

        with factory, self.assertLogs("payroll.db", level="ERROR"):
            with self.assertRaises(RuntimeError):
                async with get_async_session():
                    pass

        session.rollback.assert_awaited_once()
        session.close.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
