import hashlib
import random

import pytest

from zkpret_mcp.catalog import ToolCatalog
from zkpret_mcp.context import NetworkContext
from zkpret_mcp.errors import ToolExecutionError
from zkpret_mcp.services import (
    ActusService,
    BpmnService,
    ComplianceService,
    DataIntegrityService,
    EximService,
    GleifService,
    ProofService,
    lei_checksum_valid,
)
from zkpret_mcp.tools import compliance, proof, server, verification

BPMN = '<bpmn:startEvent id="start"/><bpmn:task id="review"/><bpmn:endEvent id="end"/>'


def _valid_lei(prefix="5493001KJTIIGC8Y1R"):
    # ISO 7064 MOD 97-10 check digits.
    digits = "".join(str(int(ch, 36)) for ch in prefix + "00")
    return f"{prefix}{98 - int(digits) % 97:02d}"


def _snapshot(network="testnet"):
    return NetworkContext(network).current()


@pytest.mark.asyncio
async def test_multi_level_compliance_reports_network():
    result = await compliance.verify_multi_level(
        {"entityId": "ACME", "complianceLevel": "global", "documents": ["h1", "h2"]},
        _snapshot("devnet"),
        compliance=ComplianceService(rng=random.Random(4)),
    )
    assert result["complianceLevel"] == "global"
    assert result["documentsVerified"] == 2
    assert result["network"] == "devnet"
    assert 1 <= result["complianceScore"] <= 100


def test_lei_checksum():
    lei = _valid_lei()
    assert lei_checksum_valid(lei)
    wrong_check = "01" if lei[-2:] != "01" else "02"
    assert not lei_checksum_valid(lei[:-2] + wrong_check)
    assert not lei_checksum_valid("SHORT")


@pytest.mark.asyncio
async def test_gleif_verify_lei():
    gleif = GleifService()
    good = await compliance.verify_lei({"lei": _valid_lei().lower()}, _snapshot(), gleif=gleif)
    assert good["valid"] is True
    assert good["lei"] == _valid_lei()
    bad = await compliance.verify_lei({"lei": "5493001KJTIIGC8Y1R99"}, _snapshot(), gleif=gleif)
    assert bad["registrationStatus"] == "INVALID"


@pytest.mark.asyncio
async def test_exim_reports_missing_documents():
    result = await compliance.verify_trade(
        {"shipmentId": "SHP-1", "documents": {"invoice": "INV-9", "bill_of_lading": ""}}, _snapshot(), exim=EximService()
    )
    assert result["compliant"] is False
    assert result["missingDocuments"] == ["bill_of_lading", "certificate_of_origin"]


@pytest.mark.asyncio
async def test_bpmn_valid_process():
    result = await verification.verify_process(
        {"processId": "p1", "processDefinition": BPMN, "expectedPath": ["review"]}, _snapshot(), bpmn=BpmnService()
    )
    assert result["valid"] is True
    assert result["complexity"] == 3


@pytest.mark.asyncio
async def test_bpmn_invalid_process_is_domain_failure():
    with pytest.raises(ToolExecutionError) as excinfo:
        await verification.verify_process(
            {"processId": "p2", "processDefinition": "<bpmn:task/>", "expectedPath": ["approve"]},
            _snapshot(),
            bpmn=BpmnService(),
        )
    partial = excinfo.value.partial_result
    assert partial["valid"] is False
    assert "Missing start event" in partial["issues"]
    assert "Expected step not found: approve" in partial["issues"]


@pytest.mark.asyncio
async def test_basel3_thresholds():
    actus = ActusService()
    compliant = await verification.verify_basel3(
        {"contractId": "c1", "riskParameters": {"capitalRatio": 0.12, "liquidityCoverageRatio": 1.3}},
        _snapshot(),
        actus=actus,
    )
    assert compliant["compliant"] is True
    weak = await verification.verify_basel3({"contractId": "c2", "riskParameters": {}}, _snapshot(), actus=actus)
    assert weak["compliant"] is False
    assert weak["recommendations"] == ["Increase capital buffer", "Improve high-quality liquid assets"]


@pytest.mark.asyncio
async def test_data_integrity():
    integrity = DataIntegrityService()
    digest = hashlib.sha256(b"ledger").hexdigest()
    ok = await verification.verify_integrity({"data": "ledger", "expectedHash": digest.upper()}, _snapshot(), integrity=integrity)
    assert ok == {"hash": digest, "valid": True, "tampering": "NONE"}
    tampered = await verification.verify_integrity(
        {"data": "ledger!", "expectedHash": digest}, _snapshot(), integrity=integrity
    )
    assert tampered["tampering"] == "DETECTED"
    unchecked = await verification.verify_integrity({"data": "ledger"}, _snapshot(), integrity=integrity)
    assert unchecked["valid"] is True


@pytest.mark.asyncio
async def test_proof_round_trip():
    proofs = ProofService(rng=random.Random(9))
    generated = await proof.generate_proof(
        {"proofType": "integrity", "circuit": "default_circuit", "publicInputs": ["a"]}, _snapshot("local"), proofs=proofs
    )
    assert generated["network"] == "local"
    checked = await proof.verify_proof(
        {"proof": generated["proof"], "verificationKey": generated["verificationKey"], "publicInputs": ["a"]},
        _snapshot(),
        proofs=proofs,
    )
    assert checked["valid"] is True
    forged = await proof.verify_proof(
        {"proof": generated["proof"], "verificationKey": generated["verificationKey"], "publicInputs": ["b"]},
        _snapshot(),
        proofs=proofs,
    )
    assert forged["valid"] is False


@pytest.mark.asyncio
async def test_proof_history_lists_newest_first_and_filters():
    proofs = ProofService(rng=random.Random(11))
    first = await proof.generate_proof(
        {"proofType": "integrity", "circuit": "default_circuit", "publicInputs": []}, _snapshot("devnet"), proofs=proofs
    )
    second = await proof.generate_proof(
        {"proofType": "compliance", "circuit": "kyc", "publicInputs": ["x"]}, _snapshot(), proofs=proofs
    )
    await proof.verify_proof(
        {"proof": first["proof"], "verificationKey": first["verificationKey"], "publicInputs": []},
        _snapshot(),
        proofs=proofs,
    )

    history = await proof.proof_history({"limit": 20}, _snapshot(), proofs=proofs)
    assert history["count"] == 2
    assert [entry["proof"] for entry in history["proofs"]] == [second["proof"], first["proof"]]
    assert history["proofs"][1]["network"] == "devnet"
    assert history["proofs"][1]["verifiedCount"] == 1

    only_integrity = await proof.proof_history({"proofType": "integrity", "limit": 20}, _snapshot(), proofs=proofs)
    assert [entry["proof"] for entry in only_integrity["proofs"]] == [first["proof"]]
    limited = await proof.proof_history({"limit": 1}, _snapshot(), proofs=proofs)
    assert [entry["proof"] for entry in limited["proofs"]] == [second["proof"]]


@pytest.mark.asyncio
async def test_server_tools_read_catalog():
    catalog = ToolCatalog()
    catalog.register_many(server.tool_entries(catalog) + proof.tool_entries(ProofService()))
    info = await server.server_info({}, _snapshot(), catalog=catalog)
    assert info["tools"]["totalTools"] == 6
    assert info["walletAttached"] is False

    everything = await server.list_categories({}, _snapshot(), catalog=catalog)
    assert [c["name"] for c in everything["categories"]] == ["server", "proof"]
    only_proof = await server.list_categories({"category": "proof"}, _snapshot(), catalog=catalog)
    assert [tool["name"] for tool in only_proof["tools"]] == ["proof_generate", "proof_verify", "proof_history"]
    with pytest.raises(ToolExecutionError):
        await server.list_categories({"category": "nope"}, _snapshot(), catalog=catalog)

    echoed = await server.echo_connection({"message": "Hello ZK-PRET!"}, _snapshot())
    assert echoed["status"] == "connected"
    assert echoed["echo"] == "Hello ZK-PRET!"
