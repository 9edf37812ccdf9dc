"""
Simulated ZK-PRET collaborators.

These services stand in for the blockchain, compliance and proof back ends.
They produce plausible values (hashes, addresses, scores) and keep a little
in-memory bookkeeping so that follow-up calls are consistent, but they never
talk to a real network or construct real proofs.
"""

from __future__ import annotations

import asyncio
import hashlib
import random
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from zkpret_mcp.context import Network, WalletHandle

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
MINA_ADDRESS_PREFIX = "B62q"
MINA_ADDRESS_LENGTH = 55
STARTING_BALANCE = 1000.0
BASEL3_MIN_CAPITAL_RATIO = 0.08
BASEL3_MIN_LIQUIDITY_COVERAGE = 1.0
EXIM_REQUIRED_DOCUMENTS = ("invoice", "bill_of_lading", "certificate_of_origin")


class ServiceError(Exception):
    """Raised by a simulated service when the requested operation cannot succeed."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sha256(*parts: Any) -> str:
    digest = hashlib.sha256()
    for part in parts:
        digest.update(str(part).encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


def _derive_address(rng: random.Random) -> str:
    body = "".join(rng.choice(BASE58_ALPHABET) for _ in range(MINA_ADDRESS_LENGTH - len(MINA_ADDRESS_PREFIX)))
    return MINA_ADDRESS_PREFIX + body


async def _pause(latency: float) -> None:
    # Yield to the loop like a real remote call would.
    await asyncio.sleep(latency)


@dataclass
class WalletService:
    latency: float = 0.0
    rng: random.Random = field(default_factory=random.Random)
    balances: Dict[str, float] = field(default_factory=dict)
    nonces: Dict[str, int] = field(default_factory=dict)

    async def create_wallet(self, network: Network) -> WalletHandle:
        await _pause(self.latency)
        address = _derive_address(self.rng)
        self.balances[address] = 0.0 if network is Network.MAINNET else STARTING_BALANCE
        self.nonces[address] = 0
        return WalletHandle(
            address=address,
            public_key=_sha256("pub", address),
            network=network,
            key_ref=f"generated:{secrets.token_hex(8)}",
        )

    async def import_wallet(self, private_key: str, network: Network) -> WalletHandle:
        await _pause(self.latency)
        if len(private_key.strip()) < 16:
            raise ServiceError("Private key is too short")
        fingerprint = _sha256("key", private_key)
        # Same key, same address.
        address = _derive_address(random.Random(fingerprint))
        self.balances.setdefault(address, STARTING_BALANCE)
        self.nonces.setdefault(address, 0)
        # Only a fingerprint of the key is kept.
        return WalletHandle(
            address=address,
            public_key=_sha256("pub", address),
            network=network,
            key_ref=f"imported:{fingerprint[:16]}",
        )

    async def get_info(self, address: str, network: Network) -> Dict[str, Any]:
        await _pause(self.latency)
        return {
            "address": address,
            "publicKey": _sha256("pub", address),
            "balance": round(self.balances.get(address, 0.0), 6),
            "nonce": self.nonces.get(address, 0),
            "network": network.value,
        }

    async def send_transaction(
        self, wallet: WalletHandle, to: str, amount: float, fee: float, memo: Optional[str]
    ) -> Dict[str, Any]:
        await _pause(self.latency)
        balance = self.balances.get(wallet.address, 0.0)
        total = amount + fee
        if total > balance:
            raise ServiceError(f"Insufficient balance: {balance:.6f} MINA available, {total:.6f} MINA required")
        nonce = self.nonces.get(wallet.address, 0)
        self.balances[wallet.address] = balance - total
        self.balances[to] = self.balances.get(to, 0.0) + amount
        self.nonces[wallet.address] = nonce + 1
        return {
            "hash": _sha256("tx", wallet.address, to, amount, nonce),
            "status": "pending",
            "from": wallet.address,
            "to": to,
            "amount": amount,
            "fee": fee,
            "nonce": nonce,
            "memo": memo,
            "timestamp": _now(),
        }

    async def sign_message(self, wallet: WalletHandle, message: str) -> str:
        await _pause(self.latency)
        return _sha256("sig", wallet.key_ref, message)

    async def verify_signature(self, message: str, signature: str, public_key: str) -> bool:
        await _pause(self.latency)
        # Signatures are keyed on the private key reference, which the verifier never
        # sees; accept any well-formed 64-hex signature.
        return len(signature) == 64 and all(ch in string.hexdigits for ch in signature)


@dataclass
class ContractService:
    latency: float = 0.0
    rng: random.Random = field(default_factory=random.Random)
    deployed: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    compiled: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    async def deploy(
        self,
        name: str,
        constructor_args: Sequence[str],
        network: Network,
        deployer: str,
        contract_type: str = "custom",
    ) -> Dict[str, Any]:
        await _pause(self.latency)
        address = _derive_address(self.rng)
        self.deployed[address] = {
            "name": name,
            "contractType": contract_type,
            "network": network.value,
            "deployer": deployer,
            "constructorArgs": list(constructor_args),
            "appState": [0] * 8,
            "nonce": 0,
            "balance": 0.0,
            "deployedAt": _now(),
        }
        return {"address": address, "transactionHash": _sha256("deploy", address), "network": network.value}

    def _contract(self, address: str, network: Network) -> Dict[str, Any]:
        contract = self.deployed.get(address)
        if contract is None or contract["network"] != network.value:
            raise ServiceError(f"No contract deployed at {address} on {network.value}")
        return contract

    async def list_deployed(self, network: Optional[str] = None, contract_type: Optional[str] = None) -> List[Dict[str, Any]]:
        await _pause(self.latency)
        return [
            {
                "address": address,
                "name": contract["name"],
                "contractType": contract["contractType"],
                "network": contract["network"],
                "deployedAt": contract["deployedAt"],
            }
            for address, contract in self.deployed.items()
            if (network is None or contract["network"] == network)
            and (contract_type is None or contract["contractType"] == contract_type)
        ]

    async def load(self, address: str, contract_type: str, network: Network) -> Dict[str, Any]:
        await _pause(self.latency)
        contract = self._contract(address, network)
        if contract["contractType"] != contract_type:
            raise ServiceError(f"Contract at {address} is a {contract['contractType']} contract, not {contract_type}")
        return {
            "address": address,
            "name": contract["name"],
            "contractType": contract_type,
            "network": network.value,
            "deployer": contract["deployer"],
            "deployedAt": contract["deployedAt"],
        }

    async def call(self, address: str, method: str, args: Sequence[str], network: Network) -> Dict[str, Any]:
        await _pause(self.latency)
        contract = self._contract(address, network)
        contract["nonce"] += 1
        slot = contract["nonce"] % len(contract["appState"])
        contract["appState"][slot] = int(_sha256(method, *args)[:6], 16)
        return {
            "returnValue": f"{method}({', '.join(args)}) executed",
            "transactionHash": _sha256("call", address, method, contract["nonce"]),
        }

    async def get_state(self, address: str, network: Network) -> Dict[str, Any]:
        await _pause(self.latency)
        contract = self._contract(address, network)
        return {
            "address": address,
            "name": contract["name"],
            "appState": list(contract["appState"]),
            "nonce": contract["nonce"],
            "balance": contract["balance"],
        }

    async def verify(self, address: str, source_code: str, network: Network) -> Dict[str, Any]:
        await _pause(self.latency)
        contract = self._contract(address, network)
        verified = contract["name"] in source_code
        return {
            "verified": verified,
            "message": "Source matches deployed contract" if verified else "Source does not declare the deployed contract",
        }

    async def compile(self, source_code: str, name: str, optimize: bool, contract_type: str = "custom") -> Dict[str, Any]:
        await _pause(self.latency)
        if "class" not in source_code and "SmartContract" not in source_code:
            raise ServiceError("Source does not define a SmartContract")
        result = {
            "contractName": name,
            "contractType": contract_type,
            "verificationKeyHash": _sha256("vk", name, source_code),
            "methods": sorted({token.split("(")[0] for token in source_code.split() if token.endswith("()")}),
            "optimized": optimize,
        }
        # Recompiling a name replaces its earlier artifact.
        self.compiled[name] = {**result, "compiledAt": _now()}
        return result

    async def list_compiled(self, contract_type: Optional[str] = None) -> List[Dict[str, Any]]:
        await _pause(self.latency)
        return [
            {**artifact, "methods": list(artifact["methods"])}
            for artifact in self.compiled.values()
            if contract_type is None or artifact["contractType"] == contract_type
        ]


@dataclass
class ComplianceService:
    latency: float = 0.0
    rng: random.Random = field(default_factory=random.Random)

    async def verify_multi_level(self, entity_id: str, level: str, documents: Sequence[str]) -> Dict[str, Any]:
        await _pause(self.latency)
        score = self.rng.randint(1, 100)
        return {
            "entityId": entity_id,
            "complianceLevel": level,
            "verified": score >= 30,
            "complianceScore": score,
            "documentsVerified": len(documents),
            "proofHash": _sha256("compliance", entity_id, level, *documents)[:32],
            "verifiedAt": _now(),
        }


def lei_checksum_valid(lei: str) -> bool:
    """ISO 17442: 20 alphanumerics whose ISO 7064 MOD 97-10 remainder is 1."""
    if len(lei) != 20 or not lei.isalnum():
        return False
    digits = "".join(str(int(ch, 36)) for ch in lei.upper())
    return int(digits) % 97 == 1


@dataclass
class GleifService:
    latency: float = 0.0

    async def verify_lei(self, lei: str) -> Dict[str, Any]:
        await _pause(self.latency)
        valid = lei_checksum_valid(lei)
        return {
            "lei": lei.upper(),
            "valid": valid,
            "registrationStatus": "ISSUED" if valid else "INVALID",
            "checkedAt": _now(),
        }


@dataclass
class EximService:
    latency: float = 0.0

    async def verify_trade(self, shipment_id: str, documents: Mapping[str, Any]) -> Dict[str, Any]:
        await _pause(self.latency)
        missing = [doc for doc in EXIM_REQUIRED_DOCUMENTS if not documents.get(doc)]
        return {
            "shipmentId": shipment_id,
            "compliant": not missing,
            "missingDocuments": missing,
            "documentsHash": _sha256("exim", shipment_id, *sorted(documents)),
        }


@dataclass
class BpmnService:
    latency: float = 0.0

    async def verify_process(self, process_id: str, definition: str, expected_path: Sequence[str]) -> Dict[str, Any]:
        await _pause(self.latency)
        issues: List[str] = []
        if "startEvent" not in definition:
            issues.append("Missing start event")
        if "endEvent" not in definition:
            issues.append("Missing end event")
        missing_steps = [step for step in expected_path if step not in definition]
        issues.extend(f"Expected step not found: {step}" for step in missing_steps)
        return {
            "processId": process_id,
            "valid": not issues,
            "issues": issues,
            "complexity": definition.count("<bpmn:") or definition.count("<"),
        }


@dataclass
class ActusService:
    latency: float = 0.0

    async def verify_basel3(self, contract_id: str, parameters: Mapping[str, float]) -> Dict[str, Any]:
        await _pause(self.latency)
        capital_ratio = float(parameters.get("capitalRatio", 0.0))
        liquidity = float(parameters.get("liquidityCoverageRatio", 0.0))
        recommendations = []
        if capital_ratio < BASEL3_MIN_CAPITAL_RATIO:
            recommendations.append("Increase capital buffer")
        if liquidity < BASEL3_MIN_LIQUIDITY_COVERAGE:
            recommendations.append("Improve high-quality liquid assets")
        risk_score = max(0.0, min(100.0, 100.0 - capital_ratio * 500 - liquidity * 20))
        return {
            "contractId": contract_id,
            "compliant": not recommendations,
            "riskScore": round(risk_score, 2),
            "recommendations": recommendations,
        }


@dataclass
class DataIntegrityService:
    latency: float = 0.0

    async def verify(self, data: str, expected_hash: Optional[str]) -> Dict[str, Any]:
        await _pause(self.latency)
        digest = hashlib.sha256(data.encode("utf-8")).hexdigest()
        tampered = expected_hash is not None and expected_hash.lower() != digest
        return {
            "hash": digest,
            "valid": not tampered,
            "tampering": "DETECTED" if tampered else "NONE",
        }


@dataclass
class ProofService:
    latency: float = 0.0
    rng: random.Random = field(default_factory=random.Random)
    issued: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    async def generate(self, proof_type: str, circuit: str, public_inputs: Sequence[str], network: Network) -> Dict[str, Any]:
        await _pause(self.latency)
        salt = self.rng.getrandbits(64)
        proof = _sha256("proof", proof_type, circuit, salt, *public_inputs)
        verification_key = _sha256("vk", circuit)
        generated_at = _now()
        self.issued[proof] = {
            "proofType": proof_type,
            "circuit": circuit,
            "network": network.value,
            "verificationKey": verification_key,
            "publicInputs": list(public_inputs),
            "generatedAt": generated_at,
            "verifiedCount": 0,
        }
        return {
            "proofType": proof_type,
            "circuit": circuit,
            "proof": proof,
            "verificationKey": verification_key,
            "publicSignals": list(public_inputs),
            "network": network.value,
            "generatedAt": generated_at,
        }

    async def verify(self, proof: str, verification_key: str, public_inputs: Sequence[str]) -> Dict[str, Any]:
        await _pause(self.latency)
        record = self.issued.get(proof)
        valid = (
            record is not None
            and record["verificationKey"] == verification_key
            and record["publicInputs"] == list(public_inputs)
        )
        if valid:
            record["verifiedCount"] += 1
        return {"valid": valid, "checkedAt": _now()}

    async def history(self, proof_type: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        """Issued proofs, newest first."""
        await _pause(self.latency)
        entries = [
            {
                "proof": proof,
                "proofType": record["proofType"],
                "circuit": record["circuit"],
                "network": record["network"],
                "generatedAt": record["generatedAt"],
                "verifiedCount": record["verifiedCount"],
            }
            for proof, record in reversed(list(self.issued.items()))
            if proof_type is None or record["proofType"] == proof_type
        ]
        return entries[:limit]


@dataclass
class Services:
    """Bundle of collaborators handed to the tool modules at bootstrap."""

    wallets: WalletService = field(default_factory=WalletService)
    contracts: ContractService = field(default_factory=ContractService)
    compliance: ComplianceService = field(default_factory=ComplianceService)
    gleif: GleifService = field(default_factory=GleifService)
    exim: EximService = field(default_factory=EximService)
    bpmn: BpmnService = field(default_factory=BpmnService)
    actus: ActusService = field(default_factory=ActusService)
    integrity: DataIntegrityService = field(default_factory=DataIntegrityService)
    proofs: ProofService = field(default_factory=ProofService)
