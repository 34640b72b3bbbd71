import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ectd_packager.database.base import Base
from pdf_factory import build_pdf_bytes


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key enforcement in SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


from ectd_packager.models import (
    Annotation,
    Document,
    DocumentStatus,
    StructureNode,
    StructureTemplate,
    Study,
    ValidationResult,
    ValidationRule,
)

# Ensure all models are imported so they're registered with Base.metadata
__all__ = [
    "Annotation",
    "Document",
    "StructureNode",
    "StructureTemplate",
    "Study",
    "ValidationResult",
    "ValidationRule",
]


@pytest.fixture
def app_settings(tmp_path, monkeypatch):
    """Point the upload and export roots at a temporary directory."""
    from ectd_packager.config import get_settings
    from ectd_packager.services.storage import get_storage

    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("EXPORTS_DIR", str(tmp_path / "exports"))
    get_settings.cache_clear()
    get_storage.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
    get_storage.cache_clear()


@pytest.fixture
def storage(app_settings):
    """Upload store rooted under tmp_path, the same one get_storage() returns."""
    from ectd_packager.services.storage import get_storage

    store = get_storage()
    store.ensure_dirs()
    return store


@pytest.fixture
def write_pdf(storage):
    """Write a generated PDF into the upload store and return its relative path."""

    def _write(relative_path: str, **kwargs) -> str:
        path = storage.get_full_path(relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_pdf_bytes(**kwargs))
        return relative_path

    return _write


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine for testing.

    Uses StaticPool to ensure all connections share the same in-memory database.
    Without this, each connection would get a fresh database without tables.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    # Enable foreign key enforcement in SQLite
    event.listen(engine, "connect", _set_sqlite_pragma)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def session(engine) -> Session:
    """Create a test database session."""
    TestSessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
    )
    session = TestSessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def sample_template(session: Session) -> StructureTemplate:
    """
    Template with a small section 16 tree:

        16      Study Information
        16.1    Protocol (required)
        16.2    Patient Data Listings
    """
    template = StructureTemplate(name="CSR Appendices", version=1, is_default=True)
    session.add(template)
    session.flush()

    root = StructureNode(template_id=template.id, code="16", title="Study Information", sort_order=0)
    session.add(root)
    session.flush()

    session.add_all(
        [
            StructureNode(
                template_id=template.id,
                parent_id=root.id,
                code="16.1",
                title="Protocol",
                required=True,
                sort_order=1,
            ),
            StructureNode(
                template_id=template.id,
                parent_id=root.id,
                code="16.2",
                title="Patient Data Listings",
                sort_order=2,
            ),
        ]
    )
    session.commit()
    session.refresh(template)
    return template


@pytest.fixture
def node_by_code(sample_template: StructureTemplate):
    """Look up one of the sample template's nodes by code."""
    nodes = {node.code: node for node in sample_template.nodes}
    return nodes.__getitem__


@pytest.fixture
def sample_study(session: Session, sample_template: StructureTemplate) -> Study:
    """Create a sample study bound to the sample template."""
    study = Study(
        study_number="ABC-123",
        sponsor="Acme Pharma",
        therapeutic_area="Oncology",
        phase="Phase 3",
        active_template_id=sample_template.id,
    )
    session.add(study)
    session.commit()
    session.refresh(study)
    return study


@pytest.fixture
def add_document(session: Session, sample_study: Study, node_by_code):
    """Factory adding a document for a node code."""

    def _add(
        code: str,
        source_path: str,
        file_name: str = "Document.pdf",
        status: DocumentStatus = DocumentStatus.APPROVED,
        version: int = 1,
        page_count: int | None = 1,
        file_size: int = 0,
    ) -> Document:
        document = Document(
            study_id=sample_study.id,
            slot_id=node_by_code(code).id,
            version=version,
            source_file_name=file_name,
            source_path=source_path,
            status=status,
            mime_type="application/pdf",
            page_count=page_count,
            file_size=file_size,
        )
        session.add(document)
        session.commit()
        session.refresh(document)
        return document

    return _add


@pytest.fixture
def approved_protocol(add_document, write_pdf) -> Document:
    """Approved protocol in the required 16.1 slot, backed by a real PDF."""
    path = write_pdf("source/protocol.pdf", pages=2, toc=[[1, "Synopsis", 1], [1, "Objectives", 2]])
    return add_document("16.1", path, file_name="Study Protocol.pdf", page_count=2)


@pytest.fixture
def client(engine, storage) -> TestClient:
    """
    Create a FastAPI test client with in-memory database.

    Upload and export roots live under tmp_path.
    """
    from sqlalchemy.orm import sessionmaker

    # Import get_db from the same place routers import it
    from ectd_packager.database import session as session_module
    from ectd_packager.main import app
    from ectd_packager.services import storage as storage_module

    # Create session factory bound to test engine
    TestSessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
    )

    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    # Override the dependencies that routers use
    app.dependency_overrides[session_module.get_db] = override_get_db
    app.dependency_overrides[storage_module.get_storage] = lambda: storage

    with TestClient(app) as client:
        yield client

    # Clear overrides after test
    app.dependency_overrides.clear()
