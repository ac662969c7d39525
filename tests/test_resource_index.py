# tests/test_resource_index.py: Tag based lookup of data movers
import pytest

from datasync_api.services.errors import ApiError, ErrorCode
from datasync_api.services.orchestration.resource_index import ResourceIndex
from datasync_api.services.tags import identity_tags, to_aws_tags


@pytest.fixture
def index(datasync, tagging):
    return ResourceIndex(org="myorg", datasync=datasync, tagging=tagging)


async def _task(datasync, name, org="myorg", group="grp"):
    src = datasync.add_location("s3://src/")
    dst = datasync.add_location("s3://dst/")
    tags = to_aws_tags(identity_tags(org, group))
    datasync.tags[src] = tags
    datasync.tags[dst] = tags
    return await datasync.create_task(
        name=name,
        source_location_arn=src,
        destination_location_arn=dst,
        tags=tags,
    )


@pytest.mark.asyncio
async def test_list_names_only_counts_tasks(index, datasync, tagging):
    await _task(datasync, "one")
    await _task(datasync, "two", group="other")
    await _task(datasync, "foreign", org="elsewhere")

    assert await index.list_names("grp") == ["one"]
    assert sorted(await index.list_names()) == ["one", "two"]
    assert tagging.calls[0] == ["datasync"]


@pytest.mark.asyncio
async def test_find_task_matches_name(index, datasync, tagging):
    arn = await _task(datasync, "one")
    await _task(datasync, "two")

    task, tags = await index.find_task(group="grp", name="one")

    assert task.task_arn == arn
    assert task.name == "one"
    assert {t.key for t in tags} >= {"spinup:org", "spinup:spaceid"}
    assert tagging.calls == [["datasync:task"]]


@pytest.mark.asyncio
async def test_find_task_not_found(index, datasync):
    await _task(datasync, "one", group="other")

    with pytest.raises(ApiError) as excinfo:
        await index.find_task(group="grp", name="one")

    assert excinfo.value.code == ErrorCode.NOT_FOUND


@pytest.mark.asyncio
async def test_find_task_requires_group_and_name(index, tagging):
    with pytest.raises(ApiError) as excinfo:
        await index.find_task(group="grp", name="")

    assert excinfo.value.code == ErrorCode.BAD_REQUEST
    assert tagging.calls == []


@pytest.mark.asyncio
async def test_location_types(index, datasync):
    s3 = datasync.add_location("s3://bucket/")
    smb = datasync.add_location("smb://server/share/")

    assert await index.location_types() == {s3: "S3", smb: "SMB"}
