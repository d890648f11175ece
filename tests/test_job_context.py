from ghaflow.job_context import ContainerInfo, JobContext, ServiceInfo


def test_from_dict_reads_all_fields():
    ctx = JobContext.from_dict(
        {
            "status": "success",
            "container": {"id": "abc", "network": "net1"},
            "services": {"db": {"id": "svc1"}},
        }
    )
    assert ctx.status == "success"
    assert ctx.container == ContainerInfo(id="abc", network="net1")
    assert ctx.services == {"db": ServiceInfo(id="svc1")}


def test_from_dict_empty_mapping_gives_defaults():
    assert JobContext.from_dict({}) == JobContext()


def test_from_dict_handles_null_service():
    ctx = JobContext.from_dict({"services": {"cache": None}})
    assert ctx.services["cache"].id == ""


def test_defaults():
    ctx = JobContext()
    assert ctx.status == ""
    assert ctx.container.id == ""
    assert ctx.services == {}