import pytest

from syncbot.features.weekly_sync.domain import (
    Project,
    SummaryStatus,
    SynthesisResult,
    ThreadType,
    UpdateSegment,
)
from syncbot.features.weekly_sync.services import SummaryService
from syncbot.features.weekly_sync.services.summary_service import (
    NO_CHANNEL,
    NO_UPDATES,
    PromptBuildError,
    build_summary_prompt,
)

WEEK = "2026-01-12"
CYCLE = "sync-2026-01-12-mk3x9a1b"


def _segment(project_id: str, person: str, content: str, **extra) -> UpdateSegment:
    return UpdateSegment(
        id=f"seg-{project_id}-{person}",
        weekly_update_id=f"wu-{person}",
        project_id=project_id,
        content=content,
        person_id=person.lower(),
        person_name=person,
        **extra,
    )


@pytest.fixture
def updates(team):
    team.segments[("proj-a", WEEK)] = [
        _segment("proj-a", "Ada", "Finished the importer", blockers="Waiting on API keys"),
        _segment("proj-a", "Grace", "Reviewed schema changes"),
    ]
    return team


def test_prompt_includes_every_segment():
    prompt = build_summary_prompt(
        "Atlas",
        WEEK,
        [
            _segment("proj-a", "Ada", "Finished the importer", next_steps="Ship it"),
            _segment("proj-a", "Grace", "Reviewed schema changes"),
        ],
    )

    assert 'project "Atlas"' in prompt
    assert WEEK in prompt
    assert "## Ada" in prompt
    assert "Next Steps: Ship it" in prompt
    assert "## Grace" in prompt


@pytest.mark.parametrize(
    "name,week,segments",
    [
        ("", WEEK, [_segment("proj-a", "Ada", "x")]),
        ("Atlas", "01/12/2026", [_segment("proj-a", "Ada", "x")]),
        ("Atlas", WEEK, []),
    ],
)
def test_prompt_validation(name, week, segments):
    with pytest.raises(PromptBuildError):
        build_summary_prompt(name, week, segments)


@pytest.mark.asyncio
async def test_summary_posted_and_thread_registered(updates, messenger, synthesizer, summary_service):
    run = await summary_service.generate_summaries(WEEK, CYCLE)

    assert run.posted == 1
    assert run.skipped == 1
    assert run.failed == 0

    atlas = next(r for r in run.results if r.project_id == "proj-a")
    assert atlas.status == SummaryStatus.POSTED
    assert atlas.thread_ts == messenger.posts[0]["ts"]
    assert messenger.posts[0]["channel_id"] == "C-ATLAS"
    assert "Finished the importer" in synthesizer.prompts[0]

    thread = updates.threads[("C-ATLAS", atlas.thread_ts)]
    assert thread.thread_type == ThreadType.PRE_MEETING
    assert thread.project_id == "proj-a"
    assert thread.sync_cycle_id == CYCLE


@pytest.mark.asyncio
async def test_project_without_updates_is_skipped(updates, summary_service):
    run = await summary_service.generate_summaries(WEEK, CYCLE)

    beacon = next(r for r in run.results if r.project_id == "proj-b")
    assert beacon.status == SummaryStatus.SKIPPED
    assert beacon.error == NO_UPDATES


@pytest.mark.asyncio
async def test_project_without_channel_is_skipped(updates, messenger, summary_service):
    updates.projects[0].slack_channel_id = None

    run = await summary_service.generate_summaries(WEEK, CYCLE)

    atlas = next(r for r in run.results if r.project_id == "proj-a")
    assert atlas.status == SummaryStatus.SKIPPED
    assert atlas.error == NO_CHANNEL
    assert run.skipped == 2
    assert messenger.posts == []


@pytest.mark.asyncio
async def test_synthesis_failure_is_counted_as_failed(updates, messenger, synthesizer, summary_service):
    synthesizer.result = SynthesisResult(success=False, error="model overloaded")

    run = await summary_service.generate_summaries(WEEK, CYCLE)

    assert run.failed == 1
    assert run.results[0].error == "model overloaded"
    assert messenger.posts == []


@pytest.mark.asyncio
async def test_blank_synthesis_is_failed(updates, messenger, synthesizer, tracker):
    synthesizer.result = SynthesisResult(success=True, text="   ")
    service = SummaryService(updates, messenger, synthesizer, tracker)

    run = await service.generate_summaries(WEEK, CYCLE)

    assert run.failed == 1
    assert messenger.posts == []


@pytest.mark.asyncio
async def test_synthesis_timeout(updates, messenger, synthesizer, tracker):
    synthesizer.delay = 1.0
    service = SummaryService(
        updates, messenger, synthesizer, tracker, synthesis_timeout_seconds=0.01
    )

    run = await service.generate_summaries(WEEK, CYCLE)

    atlas = next(r for r in run.results if r.project_id == "proj-a")
    assert atlas.status == SummaryStatus.FAILED
    assert "timed out" in atlas.error


@pytest.mark.asyncio
async def test_post_failure_is_isolated(updates, messenger, summary_service):
    updates.segments[("proj-b", WEEK)] = [_segment("proj-b", "Ada", "Beacon work")]
    messenger.fail_channels.add("C-ATLAS")

    run = await summary_service.generate_summaries(WEEK, CYCLE)

    assert run.failed == 1
    assert run.posted == 1
    assert messenger.posts[0]["channel_id"] == "C-BEACON"


@pytest.mark.asyncio
async def test_store_error_for_one_project_is_isolated(updates, summary_service):
    updates.segments[("proj-b", WEEK)] = [_segment("proj-b", "Ada", "Beacon work")]
    updates.fail_segments_for.add("proj-a")

    run = await summary_service.generate_summaries(WEEK, CYCLE)

    assert run.failed == 1
    assert run.posted == 1
    assert run.results[0].error == "segments query failed"


@pytest.mark.asyncio
async def test_run_result_to_dict(updates, summary_service):
    run = await summary_service.generate_summaries(WEEK, CYCLE)

    data = run.to_dict()
    assert data["posted"] == 1
    assert data["skipped"] == 1
    assert {r["status"] for r in data["results"]} == {"posted", "skipped"}


@pytest.mark.asyncio
async def test_generate_project_summary(updates, messenger, summary_service):
    result = await summary_service.generate_project_summary("proj-a", WEEK)

    assert result.success is True
    assert messenger.posts == []


@pytest.mark.asyncio
async def test_generate_project_summary_without_updates(updates, summary_service):
    result = await summary_service.generate_project_summary("proj-b", WEEK)

    assert result.success is False


@pytest.mark.asyncio
async def test_post_meeting_notes_reply_into_pre_meeting_thread(updates, messenger, summary_service):
    run = await summary_service.generate_summaries(WEEK, CYCLE)
    pre_meeting_ts = run.results[0].thread_ts

    result = await summary_service.publish_post_meeting_notes(
        updates.projects[0], WEEK, CYCLE, "Decisions: ship Friday"
    )

    assert result.status == SummaryStatus.POSTED
    assert messenger.posts[-1]["thread_ts"] == pre_meeting_ts
    thread = updates.threads[("C-ATLAS", result.thread_ts)]
    assert thread.thread_type == ThreadType.POST_MEETING


@pytest.mark.asyncio
async def test_post_meeting_notes_without_sibling_post_top_level(team, messenger, summary_service):
    result = await summary_service.publish_post_meeting_notes(
        team.projects[0], WEEK, CYCLE, "Decisions: ship Friday"
    )

    assert result.status == SummaryStatus.POSTED
    assert messenger.posts[0]["thread_ts"] is None


@pytest.mark.asyncio
async def test_post_meeting_notes_without_channel(summary_service):
    project = Project(id="proj-x", name="Orphan")

    result = await summary_service.publish_post_meeting_notes(project, WEEK, CYCLE, "Notes")

    assert result.status == SummaryStatus.SKIPPED
