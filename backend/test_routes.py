"""HTTP tests for the block and directive endpoints"""

import httpx

from erblocks.db.session import get_sessionmaker
from erblocks.main import app


def call_api(run_with_db, requests_fn, diagrams=("A", "B", "C", "D")):
    """Run `requests_fn(client)` against the app wired to a fresh database."""
    async def scenario(sm):
        app.dependency_overrides[get_sessionmaker] = lambda: sm
        try:
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                return await requests_fn(client)
        finally:
            app.dependency_overrides.clear()

    return run_with_db(scenario, diagrams=diagrams)


def test_block_lifecycle(run_with_db):
    async def requests(client):
        created = await client.post(
            "/diagrams/A/blocks",
            json={"parent_entity_key": "User", "child_diagram_id": "B", "label": "Details"},
        )
        assert created.status_code == 201
        block = created.json()
        assert block["parent_entity_key"] == "User"
        assert block["child_diagram_id"] == "B"
        assert block["label"] == "Details"

        listed = await client.get("/diagrams/A/blocks")
        assert [b["id"] for b in listed.json()] == [block["id"]]

        count = await client.get("/diagrams/A/blocks/count")
        assert count.json() == {"count": 1}

        fetched = await client.get(f"/diagrams/A/blocks/{block['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == block["id"]

        patched = await client.patch(f"/diagrams/A/blocks/{block['id']}", json={"label": None})
        assert patched.status_code == 200
        assert patched.json()["label"] is None
        assert patched.json()["child_diagram_id"] == "B"

        parents = await client.get("/diagrams/B/parents")
        assert [b["parent_diagram_id"] for b in parents.json()] == ["A"]

        deleted = await client.delete(f"/diagrams/A/blocks/{block['id']}")
        assert deleted.json() == {"deleted": True, "id": block["id"]}

        gone = await client.get(f"/diagrams/A/blocks/{block['id']}")
        assert gone.status_code == 404

    call_api(run_with_db, requests)


def test_error_mapping(run_with_db):
    async def requests(client):
        ok = await client.post(
            "/diagrams/A/blocks", json={"parent_entity_key": "k1", "child_diagram_id": "B"}
        )
        assert ok.status_code == 201

        duplicate = await client.post(
            "/diagrams/A/blocks", json={"parent_entity_key": "k1", "child_diagram_id": "C"}
        )
        assert duplicate.status_code == 409

        cycle = await client.post(
            "/diagrams/B/blocks", json={"parent_entity_key": "k2", "child_diagram_id": "A"}
        )
        assert cycle.status_code == 400
        assert "circular" in cycle.json()["detail"]

        self_ref = await client.post(
            "/diagrams/A/blocks", json={"parent_entity_key": "k3", "child_diagram_id": "A"}
        )
        assert self_ref.status_code == 400

        missing = await client.post(
            "/diagrams/A/blocks", json={"parent_entity_key": "k4", "child_diagram_id": "nope"}
        )
        assert missing.status_code == 404

        invalid_body = await client.post(
            "/diagrams/A/blocks", json={"parent_entity_key": "", "child_diagram_id": "B"}
        )
        assert invalid_body.status_code == 422

    call_api(run_with_db, requests)


def test_hierarchy_endpoints(run_with_db):
    async def requests(client):
        await client.post("/diagrams/A/blocks", json={"parent_entity_key": "k1", "child_diagram_id": "B"})
        await client.post("/diagrams/B/blocks", json={"parent_entity_key": "k2", "child_diagram_id": "C"})

        ancestry = await client.get("/diagrams/C/ancestry")
        assert ancestry.json() == ["A", "B", "C"]

        descendants = await client.get("/diagrams/A/descendants")
        assert descendants.json() == ["B", "C"]

        drift = await client.get("/diagrams/A/drift")
        assert drift.status_code == 200
        assert drift.json()["in_sync"] is False

        removed = await client.delete("/diagrams/A/blocks")
        assert removed.json() == {"deleted": 1}

        missing = await client.get("/diagrams/nope/ancestry")
        assert missing.status_code == 404

    call_api(run_with_db, requests)


def test_directive_endpoints(run_with_db):
    source = (
        "erDiagram\n"
        "    User ||--o{ Order : places\n"
        '    %%block: User -> diagramId=xyz label="Details"\n'
        "    %%block: -> diagramId=abc\n"
    )

    async def requests(client):
        parsed = (await client.post("/directives/parse", json={"source": source})).json()
        assert [d["entity_key"] for d in parsed["directives"]] == ["User"]
        assert parsed["errors"][0]["code"] == "missing_entity"
        assert "%%block: -> diagramId=abc" in parsed["cleaned_source"]

        entities = (await client.post("/directives/entities", json={"source": source})).json()
        assert entities["User"]["has_directive"] is True
        assert entities["User"]["directive"]["child_diagram_id"] == "xyz"
        assert entities["Order"]["has_directive"] is False

        validated = (await client.post("/directives/validate", json={"source": source})).json()
        assert validated == {"valid": True, "errors": []}

        built = await client.post(
            "/directives/build", json={"entity_key": "User", "child_diagram_id": "xyz"}
        )
        assert built.json() == {"directive": "%%block: User -> diagramId=xyz"}

        rejected = await client.post(
            "/directives/build", json={"entity_key": "9User", "child_diagram_id": "xyz"}
        )
        assert rejected.status_code == 400

    call_api(run_with_db, requests)
