import pytest
from sqlalchemy.orm import Session

import seshprep.api.v1.collections as collection_routes
import seshprep.api.v1.projects as project_routes
import seshprep.api.v1.tasks as task_routes
import seshprep.schemas as schemas
from seshprep.config import GIB
from seshprep.context import RequestContext
from seshprep.errors import AccessDenied, ValidationFailed
from seshprep.services import validation
from seshprep.services.memberships import accept_project_invitation, invite_project_member


@pytest.mark.parametrize("bpm", [39, 301, 0, -120])
def test_bpm_out_of_range_is_rejected(bpm):
    with pytest.raises(ValidationFailed):
        validation.validate_bpm(bpm)


@pytest.mark.parametrize("bpm", [40, 120, 300])
def test_bpm_bounds_are_inclusive(bpm):
    assert validation.validate_bpm(bpm) == bpm


def test_sample_rates():
    assert validation.validate_sample_rate(96000) == 96000
    with pytest.raises(ValidationFailed):
        validation.validate_sample_rate(22050)


def test_song_keys_use_musical_accidentals():
    assert validation.validate_song_key("F♯ minor") == "F♯ minor"
    assert validation.validate_song_key("B♭ major") == "B♭ major"
    with pytest.raises(ValidationFailed):
        validation.validate_song_key("H major")


@pytest.mark.parametrize("title", ["", "   ", "x" * 101, "<b>Loud</b>", "javascript:alert(1)"])
def test_bad_project_titles(title):
    with pytest.raises(ValidationFailed):
        validation.validate_project_title(title)


def test_task_title_allows_up_to_two_hundred_characters():
    assert validation.validate_task_title("x" * 200) == "x" * 200
    with pytest.raises(ValidationFailed):
        validation.validate_task_title("x" * 201)


def test_task_description_is_sanitized_and_truncated():
    cleaned = validation.sanitize_task_description("Hi <script>alert(1)</script>there " + "y" * 2000)
    assert "<script" not in cleaned
    assert len(cleaned) == 1000


@pytest.mark.parametrize(
    "url",
    ["ftp://example.com/file", "http://localhost:8000", "http://192.168.1.10/x", "http://127.0.0.1", "not a url"],
)
def test_rejected_links(url):
    with pytest.raises(ValidationFailed):
        validation.validate_url(url)


def test_accepted_links():
    assert validation.validate_url("https://drive.example.com/stems") == "https://drive.example.com/stems"
    assert validation.validate_url("") is None


def test_file_upload_returns_sanitized_name():
    name = validation.validate_file_upload("My Song (final).wav", 10 * 1024 * 1024, "audio/wav", "mixes")
    assert name == "My_Song__final_.wav"


def test_executable_double_extension_is_rejected():
    with pytest.raises(ValidationFailed) as exc:
        validation.validate_file_upload("beat.exe.wav", 1024, "audio/wav", "stems")
    assert "executable" in exc.value.message


def test_disallowed_mime_type():
    with pytest.raises(ValidationFailed):
        validation.validate_file_upload("notes.pdf", 1024, "application/pdf", "notes")


def test_size_limits_depend_on_category():
    validation.validate_file_upload("session.zip", 60 * GIB, "application/zip", "sessions")
    with pytest.raises(ValidationFailed):
        validation.validate_file_upload("session.zip", 60 * GIB + 1, "application/zip", "sessions")
    with pytest.raises(ValidationFailed):
        validation.validate_file_upload("mix.wav", 5 * GIB + 1, "audio/wav", "mixes")


def test_unknown_category():
    with pytest.raises(ValidationFailed):
        validation.validate_file_upload("mix.wav", 1, "audio/wav", "videos")


def test_file_description_limits():
    assert validation.validate_file_description("Rough bounce") == "Rough bounce"
    with pytest.raises(ValidationFailed):
        validation.validate_file_description("x" * 501)
    with pytest.raises(ValidationFailed):
        validation.validate_file_description("<iframe src=x>")


# -- through the routes --------------------------------------------------------


def test_create_project_validates_fields(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")

    with pytest.raises(ValidationFailed):
        make_project(producer, bpm=39)
    with pytest.raises(ValidationFailed):
        make_project(producer, sample_rate=22050)
    with pytest.raises(ValidationFailed):
        make_project(producer, artist="  ")

    project = make_project(producer, song_key="C♯ major")
    assert project.producer_id == producer.id
    assert project.song_key == "C♯ major"


def test_moving_a_project_into_a_collection_needs_manage_rights(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    editor = make_user("editor@example.com")
    project = make_project(producer)
    invite_project_member(db_session, RequestContext.for_user(producer), project.id, editor.email, "editor")
    db_session.commit()
    accept_project_invitation(db_session, RequestContext.for_user(editor), project.id)
    db_session.commit()
    collection = collection_routes.create_collection(
        schemas.CollectionCreate(title="Album"), db_session, RequestContext.for_user(editor)
    )

    updated = project_routes.update_project(
        project.id, schemas.ProjectUpdate(bpm=128), db_session, RequestContext.for_user(editor)
    )
    assert updated.bpm == 128

    with pytest.raises(AccessDenied):
        project_routes.update_project(
            project.id,
            schemas.ProjectUpdate(collection_id=collection.id),
            db_session,
            RequestContext.for_user(editor),
        )


def test_task_links_and_assignees_are_checked(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    outsider = make_user("outsider@example.com")
    ctx = RequestContext.for_user(producer)
    project = make_project(producer)

    with pytest.raises(ValidationFailed):
        task_routes.create_task(
            project.id, schemas.TaskCreate(title="Bounce", external_link="http://10.0.0.5/x"), db_session, ctx
        )
    with pytest.raises(ValidationFailed):
        task_routes.create_task(
            project.id, schemas.TaskCreate(title="Bounce", assigned_to=outsider.id), db_session, ctx
        )

    task = task_routes.create_task(
        project.id, schemas.TaskCreate(title="Bounce", assigned_to=producer.id), db_session, ctx
    )
    assert task.assigned_to == producer.id
