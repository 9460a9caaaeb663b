"""
Pytest Configuration and Fixtures

Provides shared fixtures for all tests.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="function")
def temp_db() -> Generator[str, None, None]:
    """Path of an empty temporary database file.

    Yields:
        Path to temporary database file.
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    try:
        os.unlink(db_path)
    except (OSError, PermissionError):
        pass


@pytest.fixture(scope="function")
def test_config(temp_db: str, monkeypatch):
    """Create test configuration with temp database.

    Args:
        temp_db: Path to temporary database.
        monkeypatch: pytest monkeypatch fixture.

    Yields:
        Config object configured for testing.
    """
    # Set environment variables
    monkeypatch.setenv("TASADOR_DB_PATH", temp_db)
    monkeypatch.setenv("TASADOR_STORE_BACKEND", "sqlite")
    monkeypatch.setenv("TASADOR_AGENT_ID", "test-agent")
    monkeypatch.setenv("TASADOR_LOG_LEVEL", "DEBUG")

    # Reset config singleton
    from tasador.config import reset_config, get_config
    reset_config()

    config = get_config()
    yield config

    # Cleanup
    reset_config()


@pytest.fixture(scope="function")
def memory_store():
    """Empty in-memory document store."""
    from tasador.remote.memory import MemoryDocumentStore
    return MemoryDocumentStore()


@pytest.fixture(scope="function")
def workspace_paths():
    from tasador.remote.paths import WorkspacePaths
    return WorkspacePaths("agent-1")


@pytest.fixture(scope="function")
def prompter():
    """Prompter that confirms everything and records the questions."""
    from tasador.valuation.prompts import StaticPrompter
    return StaticPrompter(True)


@pytest.fixture(scope="function")
def run():
    """Run a coroutine to completion: ``run(session.save())``."""
    return asyncio.run


@pytest.fixture(scope="function")
def sample_target() -> dict:
    """Target property fields: 80 m² covered + 20 m² balcony at 0.1 -> 82 m²."""
    return {
        "address": "Av. Libertador 1234",
        "covered_surface": 80,
        "uncovered_surface": 20,
        "surface_type": "Balcón",
        "homogenization_factor": 0.1,
    }


@pytest.fixture(scope="function")
def sample_comparables() -> list:
    """Three comparables with unit prices 1000, 2000 and 3000 per m²."""
    return [
        {"address": "Calle A 100", "price": 100000, "covered_surface": 100, "days_on_market": 10},
        {"address": "Calle B 200", "price": 200000, "covered_surface": 100, "days_on_market": 5},
        {"address": "Calle C 300", "price": 300000, "covered_surface": 100, "days_on_market": 30},
    ]


@pytest.fixture(scope="function")
def sample_csv() -> str:
    """Bilingual-header CSV export with one blank row."""
    return (
        "Dirección,Precio,Sup. Cubierta,Sup. Descubierta,Tipo Sup,Factor,Días\n"
        "Calle Falsa 123,\"U$S 150.000,50\",75,10,Balcón,,12\n"
        "Av. Siempreviva 742,$ 98.000,60 m²,0,Ninguno,,40\n"
        ",,,,,,\n"
        "Pasaje 9,120000,80,30,Terraza,\"0,5\",3\n"
    )
