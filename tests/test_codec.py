from __future__ import annotations

from pitchboard.contracts import RosterMember
from pitchboard.formation import AssignmentStore, slot_for
from pitchboard.persistence import (
    document_from_schema,
    roster_from_payload,
    schema_from_state,
    server_default_schema,
    unwrap_response,
)


def _starter(slot_id: str, player_id, name: str, **extra) -> dict:
    return {"id": slot_id, "positionId": slot_id, "label": slot_id.upper(), "playerId": player_id, "playerName": name, **extra}


def test_server_default_document_decodes_onto_catalog_slots():
    document = document_from_schema(server_default_schema())

    assert document is not None
    assert document.preset_name == "4-3-3"
    assert len(document.starters) == 11
    assert len(document.bench) == 7
    gk = document.starters[0]
    assert gk.position_id == "gk"
    assert gk.y_norm == slot_for("4-3-3", "gk").y_norm
    assert gk.display_name == "Player 1"
    assert document.bench[0].jersey_number == "12"
    assert all(entry.member_id is None for entry in document.starters + document.bench)


def test_empty_schema_has_no_document():
    assert document_from_schema({}) is None
    assert document_from_schema({"preset": "4-3-3", "starters": [], "subs": []}) is None


def test_sanitising_repairs_inconsistent_documents():
    schema = {
        "preset": "9-0-1",
        "starters": [
            _starter("gk", 7, "Keeper"),
            {"id": "x1", "positionId": "gk", "memberId": "8", "displayName": "Second keeper"},
            _starter("zz", "9", "Nowhere"),
            _starter("st", "7", "Keeper again"),
            _starter("lb", None, "Player 2"),
        ],
    }

    document = document_from_schema(schema, bench_capacity=3)

    assert document.preset_name == "4-3-3"
    assert [(s.position_id, s.member_id) for s in document.starters] == [("gk", "7"), ("lb", None)]
    assert [b.member_id for b in document.bench] == [None, None, None, "8", "9"]
    assert document.bench[3].display_name == "Second keeper"


def test_duplicate_assignment_ids_are_reissued():
    schema = {
        "preset": "4-3-3",
        "starters": [_starter("gk", "1", "A")],
        "subs": [{"id": "gk", "playerId": "2", "playerName": "B"}],
    }

    document = document_from_schema(schema)

    ids = [document.starters[0].assignment_id, document.bench[0].assignment_id]
    assert ids[0] == "gk"
    assert ids[1] != "gk"


def test_state_encodes_to_wire_keys_and_decodes_back():
    store = AssignmentStore("T9")
    store.set_dummy_players()
    schema = schema_from_state(store.state)

    starter = schema["starters"][0]
    assert set(starter) >= {"id", "positionId", "label", "xNorm", "yNorm", "playerId", "jerseyNumber", "playerName", "position"}
    assert schema["subs"][0]["label"] == "SUB"
    assert schema["preset"] == "4-3-3"
    assert schema["updated_at"]

    document = document_from_schema(schema)
    assert [(s.assignment_id, s.position_id) for s in document.starters] == [
        (s.assignment_id, s.position_id) for s in store.state.starters
    ]
    assert [b.assignment_id for b in document.bench] == [b.assignment_id for b in store.state.bench]


def test_unwrap_accepts_wrapped_and_bare_documents():
    schema = server_default_schema()
    assert unwrap_response({"schema_json": schema, "notSaved": True}) == (schema, True)
    assert unwrap_response(schema) == (schema, False)
    assert unwrap_response({"message": "ok"}) == ({}, False)
    assert unwrap_response(None) == ({}, False)


def test_roster_payload_accepts_backend_field_names():
    members = roster_from_payload(
        [
            {"id": 4, "preferredPositionCode": "CB", "jerseyNumber": 5, "displayName": "Stone"},
            {"id": "5", "position": "ST", "lastName": "Kane", "firstName": "Harry"},
            {"id": "6", "preferredPosition": "GK", "firstName": "Alisson"},
            {"preferredPosition": "GK"},
            RosterMember("7", "LW"),
        ]
    )

    assert members == [
        RosterMember("4", "CB", "5", "Stone"),
        RosterMember("5", "ST", None, "Kane"),
        RosterMember("6", "GK", None, "Alisson"),
        RosterMember("7", "LW"),
    ]
