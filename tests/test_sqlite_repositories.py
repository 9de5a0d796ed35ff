import os
import sqlite3
import tempfile
import unittest

from application.account_service import change_password, delete_account, register_account
from application.message_service import (
    delete_message,
    edit_message,
    get_message,
    list_messages_by_author,
    post_message,
)
from application.results import ErrorKind
from domain.errors import IntegrityViolation, StorageError
from domain.models import Account, Message
from domain.security import verify_password
from infrastructure.db.account_repository_sqlite import SqliteAccountRepository
from infrastructure.db.connection import SqliteConnectionProvider
from infrastructure.db.message_repository_sqlite import SqliteMessageRepository


class SqliteRepositoryTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.db_path = os.path.join(self._tmp.name, "test.db")
        self.provider = SqliteConnectionProvider(self.db_path)
        self.account_repo = SqliteAccountRepository(self.provider, bcrypt_rounds=4)
        self.message_repo = SqliteMessageRepository(self.provider)

    def _account(self, username="testuser1", password="password") -> Account:
        return self.account_repo.create(Account(username=username, password=password))

    def _message(self, posted_by, text="test message 1", epoch=1669947792) -> Message:
        return self.message_repo.create(
            Message(posted_by=posted_by, message_text=text, time_posted_epoch=epoch)
        )


class SqliteAccountRepositoryTests(SqliteRepositoryTestCase):
    def test_create_assigns_ids_and_hashes_password(self):
        first = self._account("alice", "s3cret")
        second = self._account("bob", "s3cret")

        self.assertIsNotNone(first.account_id)
        self.assertNotEqual(first.account_id, second.account_id)
        self.assertNotEqual(first.password, "s3cret")
        self.assertTrue(verify_password("s3cret", first.password))
        # Same password, different salt.
        self.assertNotEqual(first.password, second.password)

    def test_create_then_get_round_trip(self):
        created = self._account()
        self.assertEqual(self.account_repo.get(created.account_id), created)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.account_repo.get(999))

    def test_find_by_username_is_exact_and_case_sensitive(self):
        created = self._account("alice")
        self.assertEqual(self.account_repo.find_by_username("alice"), created)
        self.assertIsNone(self.account_repo.find_by_username("Alice"))
        self.assertIsNone(self.account_repo.find_by_username("alic"))

    def test_get_all(self):
        self._account("alice")
        self._account("bob")
        names = sorted(a.username for a in self.account_repo.get_all())
        self.assertEqual(names, ["alice", "bob"])

    def test_duplicate_username_violates_constraint(self):
        self._account("alice")
        with self.assertRaises(IntegrityViolation):
            self._account("alice")
        self.assertEqual(len(self.account_repo.get_all()), 1)

    def test_update_rehashes_supplied_password(self):
        created = self._account("alice", "s3cret")

        updated = self.account_repo.update(
            Account(account_id=created.account_id, username="alice", password="n3w-pass")
        )

        self.assertTrue(verify_password("n3w-pass", updated.password))
        self.assertEqual(self.account_repo.get(created.account_id), updated)

    def test_update_without_password_keeps_stored_hash(self):
        created = self._account("alice", "s3cret")

        updated = self.account_repo.update(
            Account(account_id=created.account_id, username="alice2", password=None)
        )

        self.assertEqual(updated.username, "alice2")
        self.assertEqual(updated.password, created.password)

    def test_update_missing_id_is_a_noop(self):
        candidate = Account(account_id=404, username="ghost", password=None)
        self.assertEqual(self.account_repo.update(candidate), candidate)
        self.assertEqual(self.account_repo.get_all(), [])

    def test_delete_returns_snapshot_once(self):
        created = self._account()
        self.assertEqual(self.account_repo.delete(created.account_id), created)
        self.assertIsNone(self.account_repo.delete(created.account_id))
        self.assertIsNone(self.account_repo.get(created.account_id))

    def test_deleting_account_cascades_to_messages(self):
        author = self._account()
        message = self._message(author.account_id)

        self.account_repo.delete(author.account_id)

        self.assertIsNone(self.message_repo.get(message.message_id))
        self.assertEqual(self.message_repo.find_all_by_author(author.account_id), [])


class SqliteMessageRepositoryTests(SqliteRepositoryTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.author = self._account()

    def test_create_then_get_round_trip(self):
        created = self._message(self.author.account_id)
        self.assertIsNotNone(created.message_id)
        self.assertEqual(self.message_repo.get(created.message_id), created)

    def test_create_ignores_supplied_id(self):
        created = self.message_repo.create(
            Message(message_id=77, posted_by=self.author.account_id, message_text="hi", time_posted_epoch=1)
        )
        self.assertNotEqual(created.message_id, 77)

    def test_create_for_missing_author_violates_constraint(self):
        with self.assertRaises(IntegrityViolation):
            self._message(posted_by=999)
        self.assertEqual(self.message_repo.get_all(), [])

    def test_find_all_by_author(self):
        other = self._account("other")
        mine = [self._message(self.author.account_id, text=t) for t in ("a", "b")]
        self._message(other.account_id, text="c")

        found = self.message_repo.find_all_by_author(self.author.account_id)

        self.assertEqual(sorted(found, key=lambda m: m.message_id), mine)
        self.assertEqual(self.message_repo.find_all_by_author(999), [])

    def test_update_touches_only_text(self):
        created = self._message(self.author.account_id)
        other = self._account("other")

        updated = self.message_repo.update(
            Message(
                message_id=created.message_id,
                posted_by=other.account_id,
                message_text="edited",
                time_posted_epoch=1,
            )
        )

        self.assertEqual(updated.message_text, "edited")
        self.assertEqual(updated.posted_by, created.posted_by)
        self.assertEqual(updated.time_posted_epoch, created.time_posted_epoch)
        self.assertEqual(self.message_repo.get(created.message_id), updated)

    def test_delete_returns_snapshot_once(self):
        created = self._message(self.author.account_id)
        self.assertEqual(self.message_repo.delete(created.message_id), created)
        self.assertIsNone(self.message_repo.delete(created.message_id))

    def test_delete_waits_for_the_write_lock_before_reading(self):
        locked = SqliteMessageRepository(SqliteConnectionProvider(self.db_path, timeout=0.05))
        holder = sqlite3.connect(self.db_path, isolation_level=None)
        self.addCleanup(holder.close)
        holder.execute("BEGIN IMMEDIATE")

        with self.assertRaises(StorageError):
            locked.delete(999)

        holder.execute("ROLLBACK")
        self.assertIsNone(locked.delete(999))


class SqliteServiceIntegrationTests(SqliteRepositoryTestCase):
    def test_register_and_post_against_sqlite(self):
        account = register_account(Account(username="alice", password="s3cret"), self.account_repo)
        self.assertTrue(account.success)

        posted = post_message(
            Message(posted_by=account.value.account_id, message_text="hi", time_posted_epoch=5),
            self.message_repo,
            self.account_repo,
        )
        self.assertTrue(posted.success)

        duplicate = register_account(Account(username="alice", password="other1"), self.account_repo)
        self.assertEqual(duplicate.error, ErrorKind.CONFLICT)

    def test_ids_beyond_64_bits_are_unknown(self):
        author = register_account(Account(username="alice", password="s3cret"), self.account_repo).value
        posted = post_message(
            Message(posted_by=author.account_id, message_text="hi", time_posted_epoch=5),
            self.message_repo,
            self.account_repo,
        ).value

        for huge in (2**63, 2**64, -(2**63) - 1):
            with self.subTest(value=huge):
                unknown_author = post_message(
                    Message(posted_by=huge, message_text="hi", time_posted_epoch=1),
                    self.message_repo,
                    self.account_repo,
                )
                self.assertEqual(unknown_author.error, ErrorKind.VALIDATION)

                bad_epoch = post_message(
                    Message(posted_by=author.account_id, message_text="hi", time_posted_epoch=huge),
                    self.message_repo,
                    self.account_repo,
                )
                self.assertEqual(bad_epoch.error, ErrorKind.VALIDATION)

                self.assertEqual(edit_message(huge, "x", self.message_repo).error, ErrorKind.NOT_FOUND)
                self.assertTrue(get_message(huge, self.message_repo).success)
                self.assertIsNone(get_message(huge, self.message_repo).value)
                self.assertIsNone(delete_message(huge, self.message_repo).value)
                self.assertEqual(list_messages_by_author(huge, self.message_repo).value, [])
                self.assertEqual(change_password(huge, "n3w-pass", self.account_repo).error, ErrorKind.NOT_FOUND)
                self.assertEqual(delete_account(huge, self.account_repo).error, ErrorKind.NOT_FOUND)

        self.assertEqual(self.message_repo.get_all(), [posted])

    def test_unreachable_database_is_a_storage_error(self):
        provider = SqliteConnectionProvider(os.path.join(self._tmp.name, "missing", "db.sqlite"))
        with self.assertRaises(StorageError):
            SqliteAccountRepository(provider)


if __name__ == "__main__":
    unittest.main()
