"""Minimal sanity checks: build the server core and drive a few tools through the dispatcher."""

from __future__ import annotations

import asyncio
import os
import sys

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from zkpret_mcp.bootstrap import build_application  # noqa: E402
from zkpret_mcp.config import load_config  # noqa: E402

# Optional network override for the run; falls back to ZKPRET_MCP_NETWORK / testnet.
SAMPLE_NETWORK = os.getenv("ZKPRET_SAMPLE_NETWORK")
# Opt-in to the proof round trip (prints long hashes).
RUN_PROOFS = os.getenv("RUN_PROOF_SANITY", "false").lower() in {"1", "true", "yes"}


async def main() -> None:
    application = build_application(load_config())
    dispatch = application.dispatcher.dispatch

    print("Server info:", (await dispatch("server_info")).to_dict())
    if SAMPLE_NETWORK:
        print("Switch network:", (await dispatch("network_switch", {"network": SAMPLE_NETWORK})).to_dict())
    print("Current network:", (await dispatch("network_current")).to_dict())

    created = await dispatch("wallet_create")
    print("Wallet create:", created.to_dict())
    print("Wallet balance:", (await dispatch("wallet_get_balance")).to_dict())
    print("Sign message:", (await dispatch("wallet_sign_message", {"message": "sanity"})).to_dict())

    print("Unknown tool:", (await dispatch("does_not_exist")).to_dict())
    print("Invalid arguments:", (await dispatch("wallet_send_transaction", {"amount": -1})).to_dict())

    if RUN_PROOFS:
        generated = await dispatch("proof_generate", {"proofType": "integrity", "publicInputs": ["sanity"]})
        print("Proof generate:", generated.to_dict())
        if generated.ok and not generated.is_error:
            verified = await dispatch(
                "proof_verify",
                {
                    "proof": generated.result["proof"],
                    "verificationKey": generated.result["verificationKey"],
                    "publicInputs": ["sanity"],
                },
            )
            print("Proof verify:", verified.to_dict())
        print("Proof history:", (await dispatch("proof_history", {"limit": 5})).to_dict())


if __name__ == "__main__":
    asyncio.run(main())
