from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lecturehub.bootstrap import Bootstrapper
from lecturehub.config import AppConfig
from lecturehub.services.catalog import CatalogService
from lecturehub.services.documents import SQLiteDocumentStore
from lecturehub.services.models import Course, Department, Program, Student, User


FIXED_NOW = datetime(2025, 3, 12, 12, 0)


@pytest.fixture()
def temp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_file = config_dir / "default.json"
    config_file.write_text(
        """
        {
            \"storage_root\": \"storage\",
            \"database_file\": \"storage/lecturehub.db\",
            \"exports_root\": \"exports\",
            \"backend\": \"sqlite\"
        }
        """,
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)

    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "database_file": "storage/lecturehub.db",
            "exports_root": "exports",
            "backend": "sqlite",
            "university": {"name": "Test University", "short_code": "tu"},
        },
        base_path=tmp_path,
    )

    Bootstrapper(config).initialize()
    return config


@pytest.fixture()
def store(temp_config: AppConfig) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(temp_config)


@pytest.fixture()
def catalog(store: SQLiteDocumentStore) -> CatalogService:
    return CatalogService(store)


@pytest.fixture()
def curriculum(catalog: CatalogService) -> dict:
    """A department with one program, one course, a lecturer and two students."""

    department = catalog.create_department(Department(id=None, name="Computing", code="CMP"))
    program = catalog.create_program(
        Program(id=None, name="Computer Science", code="CS101", department_id=department.id)
    )
    course = catalog.create_course(
        Course(
            id=None,
            name="Data Structures",
            code="CSC2201",
            program_ids=[program.id],
            department_id=department.id,
        )
    )
    lecturer = catalog.create_user(
        User(id=None, email="grace@example.edu", display_name="Grace Namara", role="lecturer")
    )
    students = [
        catalog.create_student(
            Student(id=None, name=name, student_id=number, course_id=course.id)
        )
        for name, number in (("Alice Auma", "STU250001"), ("Ben Odongo", "STU250002"))
    ]
    return {
        "department": department,
        "program": program,
        "course": course,
        "lecturer": lecturer,
        "students": students,
    }
