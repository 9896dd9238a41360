"""Service-level tests for the versioned markdown document store."""

from __future__ import annotations

import random
import tempfile
import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import DocumentVersion, OutboxEvent, VerifiedDomain
from app.models.base import Base
from app.publishing.endorsement import EndorsementResult
from app.services import documents
from app.services.documents import (
    ServeStatus,
    VersionStatus,
    activate_version,
    activate_version_by_id,
    deactivate_version,
    get_servable_document,
    list_versions,
    render_document,
    reverify_active_documents,
)
from app.services.domains import get_domain, mark_domain_verified, register_domain
from app.services.events import list_events


class _StubEndorsementChecker:
    def __init__(self, failing_paths: set[str]) -> None:
        self.failing_paths = failing_paths
        self.checked: list[tuple[str, str]] = []

    def check(self, *, source_url: str, domain: str, path: str) -> EndorsementResult:
        self.checked.append((domain, path))
        expected = f"https://md.localhost/{domain}/{path}.md"
        if path in self.failing_paths:
            return EndorsementResult(valid=False, expected_href=expected, error="endorsement missing or incorrect")
        return EndorsementResult(valid=True, expected_href=expected)


class DocumentStoreTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self._reset_tables()

    def tearDown(self) -> None:
        self.db.close()

    def _reset_tables(self) -> None:
        self.db.execute(delete(OutboxEvent))
        self.db.execute(delete(DocumentVersion))
        self.db.execute(delete(VerifiedDomain))
        self.db.commit()

    def _render(self, content_hash: str, *, domain: str = "example.com", path: str = "guides/setup"):
        return render_document(
            self.db,
            domain=domain,
            path=path,
            content_hash=content_hash,
            content=f"# version {content_hash}\n",
            source_url=f"https://{domain}/{path}",
        )

    def _verify(self, domain: str = "example.com") -> None:
        register_domain(self.db, domain)
        mark_domain_verified(self.db, domain, verified_at=datetime(2026, 10, 1, tzinfo=timezone.utc))

    def _active_hashes(self, domain: str = "example.com", path: str = "guides/setup") -> list[str]:
        return list(
            self.db.scalars(
                select(DocumentVersion.content_hash).where(
                    DocumentVersion.domain == domain,
                    DocumentVersion.path == path,
                    DocumentVersion.is_active.is_(True),
                )
            ).all()
        )

    def test_render_is_idempotent_per_triple(self) -> None:
        first = self._render("hash-a")
        second = self._render("hash-a")

        self.assertEqual(first.status, VersionStatus.CREATED)
        self.assertEqual(second.status, VersionStatus.DUPLICATE)
        self.assertEqual(second.version.id, first.version.id)
        count = self.db.scalar(select(func.count()).select_from(DocumentVersion))
        self.assertEqual(count, 1)
        self.assertFalse(first.version.is_active)

    def test_render_conflict_from_concurrent_writer_is_reported_as_duplicate(self) -> None:
        self._render("hash-a")
        real_find_version = documents.find_version
        calls: list[int] = []

        def _miss_first_lookup(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                return None
            return real_find_version(*args, **kwargs)

        with mock.patch.object(documents, "find_version", side_effect=_miss_first_lookup):
            outcome = self._render("hash-a")

        self.assertEqual(outcome.status, VersionStatus.DUPLICATE)
        self.assertIsNotNone(outcome.version)
        count = self.db.scalar(select(func.count()).select_from(DocumentVersion))
        self.assertEqual(count, 1)

    def test_render_on_verified_domain_auto_activates_and_swaps(self) -> None:
        self._verify()

        first = self._render("hash-a")
        second = self._render("hash-b")

        self.assertFalse(first.version.is_active)
        self.assertTrue(second.version.is_active)
        self.assertEqual(self._active_hashes(), ["hash-b"])
        activated = list_events(self.db, event_type="markdown.activated")
        reasons = [event.payload_json.get("activation_reason") for event in activated]
        self.assertEqual(reasons, [documents.REASON_VERIFIED_INGEST, documents.REASON_VERIFIED_INGEST])

    def test_activate_swaps_active_version_atomically(self) -> None:
        self._render("hash-a")
        self._render("hash-b")

        first = activate_version(self.db, "example.com", "guides/setup", "hash-a")
        second = activate_version(self.db, "example.com", "guides/setup", "hash-b")
        repeat = activate_version(self.db, "example.com", "guides/setup", "hash-b")

        self.assertEqual(first.status, VersionStatus.ACTIVATED)
        self.assertEqual(second.status, VersionStatus.ACTIVATED)
        self.assertEqual(repeat.status, VersionStatus.ALREADY_ACTIVE)
        self.assertEqual(self._active_hashes(), ["hash-b"])

    def test_activate_missing_version_leaves_active_set_unchanged(self) -> None:
        self._render("hash-a")
        activate_version(self.db, "example.com", "guides/setup", "hash-a")

        outcome = activate_version(self.db, "example.com", "guides/setup", "hash-missing")

        self.assertEqual(outcome.status, VersionStatus.NOT_FOUND)
        self.assertFalse(outcome.ok)
        self.assertEqual(self._active_hashes(), ["hash-a"])

    def test_activate_by_id(self) -> None:
        self._render("hash-a")
        target = self._render("hash-b").version
        activate_version(self.db, "example.com", "guides/setup", "hash-a")

        outcome = activate_version_by_id(self.db, target.id)
        missing = activate_version_by_id(self.db, target.id + 1000)

        self.assertEqual(outcome.status, VersionStatus.ACTIVATED)
        self.assertEqual(outcome.version.content_hash, "hash-b")
        self.assertEqual(missing.status, VersionStatus.NOT_FOUND)
        self.assertEqual(self._active_hashes(), ["hash-b"])

    def test_failed_activation_rolls_back(self) -> None:
        self._render("hash-a")
        self._render("hash-b")
        activate_version(self.db, "example.com", "guides/setup", "hash-a")

        failure = OperationalError("UPDATE document_versions", {}, Exception("database is locked"))
        with mock.patch.object(self.db, "commit", side_effect=failure):
            outcome = activate_version(self.db, "example.com", "guides/setup", "hash-b")

        self.assertEqual(outcome.status, VersionStatus.FAILED)
        self.assertIn("database is locked", outcome.error or "")
        self.assertEqual(self._active_hashes(), ["hash-a"])

    def test_deactivate_targets_only_the_given_version(self) -> None:
        self._render("hash-a")
        self._render("hash-b")
        activate_version(self.db, "example.com", "guides/setup", "hash-a")

        inactive = deactivate_version(self.db, "example.com", "guides/setup", "hash-b")
        active = deactivate_version(self.db, "example.com", "guides/setup", "hash-a")
        again = deactivate_version(self.db, "example.com", "guides/setup", "hash-a")
        missing = deactivate_version(self.db, "example.com", "guides/setup", "hash-z")

        self.assertEqual(inactive.status, VersionStatus.ALREADY_INACTIVE)
        self.assertEqual(active.status, VersionStatus.DEACTIVATED)
        self.assertEqual(again.status, VersionStatus.ALREADY_INACTIVE)
        self.assertEqual(missing.status, VersionStatus.NOT_FOUND)
        self.assertEqual(self._active_hashes(), [])

    def test_operations_accept_unnormalized_domains(self) -> None:
        rendered = self._render("hash-a", domain="WWW.Example.com")

        activated = activate_version(self.db, "WWW.Example.com", "guides/setup", "hash-a")
        listed = list_versions(self.db, "Example.com:443", "guides/setup")
        deactivated = deactivate_version(self.db, "www.example.com", "guides/setup", "hash-a")

        self.assertEqual(rendered.version.domain, "example.com")
        self.assertEqual(activated.status, VersionStatus.ACTIVATED)
        self.assertEqual([version.content_hash for version in listed], ["hash-a"])
        self.assertEqual(deactivated.status, VersionStatus.DEACTIVATED)

    def test_list_versions_newest_first(self) -> None:
        for content_hash in ("hash-a", "hash-b", "hash-c"):
            self._render(content_hash)
        self._render("hash-other", path="other")
        activate_version(self.db, "example.com", "guides/setup", "hash-b")

        versions = list_versions(self.db, "example.com", "guides/setup")

        self.assertEqual([version.content_hash for version in versions], ["hash-c", "hash-b", "hash-a"])
        self.assertEqual([version.is_active for version in versions], [False, True, False])

    def test_random_operation_sequences_keep_at_most_one_active_version(self) -> None:
        rng = random.Random(20261019)
        keys = [("example.com", "a"), ("example.com", "b"), ("other.org", "a")]
        hashes = ["h1", "h2", "h3", "h4"]
        self._verify("other.org")

        for _ in range(150):
            domain, path = rng.choice(keys)
            content_hash = rng.choice(hashes)
            operation = rng.choice(["render", "activate", "deactivate"])
            if operation == "render":
                self._render(content_hash, domain=domain, path=path)
            elif operation == "activate":
                activate_version(self.db, domain, path, content_hash)
            else:
                deactivate_version(self.db, domain, path, content_hash)

            for key_domain, key_path in keys:
                self.assertLessEqual(len(self._active_hashes(key_domain, key_path)), 1)

    def test_serving_rules(self) -> None:
        self.assertEqual(get_servable_document(self.db, "example.com", "guides/setup").status, ServeStatus.NOT_FOUND)

        register_domain(self.db, "example.com")
        self._render("hash-a")
        activate_version(self.db, "example.com", "guides/setup", "hash-a")
        forbidden = get_servable_document(self.db, "example.com", "guides/setup")

        mark_domain_verified(self.db, "example.com")
        served = get_servable_document(self.db, "example.com", "guides/setup")
        deactivate_version(self.db, "example.com", "guides/setup", "hash-a")
        nothing_active = get_servable_document(self.db, "example.com", "guides/setup")

        self.assertEqual(forbidden.status, ServeStatus.FORBIDDEN)
        self.assertEqual(served.status, ServeStatus.SERVED)
        self.assertEqual(served.version.content_hash, "hash-a")
        self.assertEqual(nothing_active.status, ServeStatus.NOT_FOUND)

    def test_active_version_without_content_is_not_served(self) -> None:
        self._verify()
        render_document(self.db, domain="example.com", path="pending", content_hash="hash-p", content=None)

        outcome = get_servable_document(self.db, "example.com", "pending")

        self.assertEqual(self._active_hashes(path="pending"), ["hash-p"])
        self.assertEqual(outcome.status, ServeStatus.NOT_FOUND)

    def test_lifecycle_events_are_written_to_outbox(self) -> None:
        self._render("hash-a")
        activate_version(self.db, "example.com", "guides/setup", "hash-a")
        deactivate_version(self.db, "example.com", "guides/setup", "hash-a", reason="operator")

        event_types = [event.event_type for event in reversed(list_events(self.db))]

        self.assertEqual(event_types, ["markdown.generated", "markdown.activated", "markdown.deactivated"])
        deactivated = list_events(self.db, event_type="markdown.deactivated")[0]
        self.assertEqual(deactivated.payload_json["reason"], "operator")
        self.assertEqual(deactivated.payload_json["content_hash"], "hash-a")

    def test_reverify_deactivates_documents_failing_endorsement(self) -> None:
        self._verify()
        self._render("hash-a", path="kept")
        self._render("hash-b", path="dropped")
        checker = _StubEndorsementChecker(failing_paths={"dropped"})

        outcomes = reverify_active_documents(self.db, checker)

        self.assertEqual([outcome.status for outcome in outcomes], [VersionStatus.DEACTIVATED])
        self.assertEqual(outcomes[0].version.path, "dropped")
        self.assertEqual(self._active_hashes(path="kept"), ["hash-a"])
        self.assertEqual(self._active_hashes(path="dropped"), [])
        self.assertEqual(sorted(checker.checked), [("example.com", "dropped"), ("example.com", "kept")])
        reason = list_events(self.db, event_type="markdown.deactivated")[0].payload_json["reason"]
        self.assertTrue(reason.startswith(documents.REASON_ENDORSEMENT_FAILED))


class ConcurrentActivationTests(unittest.TestCase):
    HASHES = ("hash-a", "hash-b", "hash-c", "hash-d")

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        db_path = Path(self._tmp.name) / "documents.sqlite"
        self.engine = create_engine(
            f"sqlite+pysqlite:///{db_path}",
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(self.engine)
        with self.SessionLocal() as db:
            for content_hash in self.HASHES:
                render_document(
                    db,
                    domain="example.com",
                    path="guides/setup",
                    content_hash=content_hash,
                    content=f"# {content_hash}\n",
                )

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmp.cleanup()

    def _activate_many(self, seed: int, rounds: int) -> list[VersionStatus]:
        rng = random.Random(seed)
        statuses: list[VersionStatus] = []
        with self.SessionLocal() as db:
            for _ in range(rounds):
                outcome = activate_version(db, "example.com", "guides/setup", rng.choice(self.HASHES))
                statuses.append(outcome.status)
        return statuses

    def test_parallel_activations_leave_a_single_active_version(self) -> None:
        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(self._activate_many, seed, 15) for seed in range(4)]
            statuses = [status for future in futures for status in future.result()]

        with self.SessionLocal() as db:
            active = db.scalars(
                select(DocumentVersion.content_hash).where(DocumentVersion.is_active.is_(True))
            ).all()

        self.assertEqual(len(statuses), 60)
        self.assertTrue(
            set(statuses) <= {VersionStatus.ACTIVATED, VersionStatus.ALREADY_ACTIVE, VersionStatus.FAILED}
        )
        self.assertIn(VersionStatus.ACTIVATED, statuses)
        self.assertEqual(len(active), 1)


class DomainRegistryTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self.db.execute(delete(VerifiedDomain))
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_register_normalizes_and_refreshes_token_until_verified(self) -> None:
        first = register_domain(self.db, "WWW.Example.com:8443")
        first_token = first.verification_token
        second = register_domain(self.db, "example.com")

        self.assertEqual(first.domain, "example.com")
        self.assertEqual(second.id, first.id)
        self.assertNotEqual(second.verification_token, first_token)

        verified = mark_domain_verified(self.db, "example.com")
        token_after_verify = verified.verification_token
        third = register_domain(self.db, "example.com")

        self.assertIsNotNone(verified.verified_at)
        self.assertEqual(third.verification_token, token_after_verify)
        self.assertIsNotNone(get_domain(self.db, "www.example.com"))

    def test_mark_unknown_domain_returns_none(self) -> None:
        self.assertIsNone(mark_domain_verified(self.db, "unknown.example"))


if __name__ == "__main__":
    unittest.main()
