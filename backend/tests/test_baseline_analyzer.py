import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from dispatch_migration.services.baseline import BaselineAnalyzer, gap_status
from dispatch_migration.services.executor import MigrationExecutor


@pytest.mark.parametrize(
    "gap, percentage, expected",
    [(0, 0.0, "synced"), (3, 0.5, "minor_gap"), (30, 4.99, "behind"), (300, 5.0, "major_gap")],
)
def test_gap_status(gap, percentage, expected):
    assert gap_status(gap, percentage) == expected


def test_analyze_entity_counts(source_session, target_session):
    analysis = BaselineAnalyzer(source_session, target_session).analyze_entity("offices")

    assert analysis.source_count == 2
    assert analysis.destination_count == 0
    assert analysis.record_gap == 2
    assert analysis.gap_percentage == 100.0
    assert analysis.status == "major_gap"
    assert analysis.has_data is True
    assert analysis.last_migration_at is None


def test_empty_target_is_critical(source_session, target_session):
    report = BaselineAnalyzer(source_session, target_session).generate_report(
        ["offices", "doctors", "patients"]
    )

    assert report.overall_status == "critical_issues"
    assert report.summary.total_source_records == 6
    assert report.summary.overall_gap == 6
    assert report.summary.entities_with_gaps == 3
    assert report.recommendations == [
        "3 entities have record gaps - investigate missing data",
        "High average gap percentage - consider full re-sync for affected entities",
    ]


def test_synced_target_is_healthy(source_session, target_session):
    MigrationExecutor(source_session, target_session, sleep=lambda _: None).run(
        ["offices", "doctors"]
    )

    analyzer = BaselineAnalyzer(source_session, target_session)
    report = analyzer.generate_report(["offices", "doctors"], include_mappings=True)

    assert report.overall_status == "healthy"
    assert [e.status for e in report.entities] == ["synced", "synced"]
    assert all(e.last_migration_at is not None for e in report.entities)
    assert all(v.is_valid for v in report.mapping_validation)
    assert report.recommendations == [
        "All entities appear healthy - ready for differential migration"
    ]


def test_connection_checks(source_session, target_session):
    checks = BaselineAnalyzer(source_session, target_session).test_connections()
    assert [(c.name, c.ok) for c in checks] == [("source", True), ("destination", True)]


def test_validate_mappings_reports_missing_and_orphaned(target_session):
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE dispatch_office (id INTEGER PRIMARY KEY, name TEXT)"))
    target_session.execute(text("ALTER TABLE offices ADD COLUMN fax TEXT"))
    target_session.commit()

    with Session(engine) as source:
        validation = BaselineAnalyzer(source, target_session).validate_mappings("offices")

    assert validation.is_valid is False
    assert "dispatch_office.tax_rate" in validation.missing_columns
    assert "dispatch_office.emails" in validation.missing_columns
    assert "dispatch_office.name" not in validation.missing_columns
    assert validation.orphaned_columns == ["offices.fax"]
    engine.dispose()
