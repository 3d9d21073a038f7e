"""Admission certificates and the signed admission logbook."""

from __future__ import annotations

from datetime import datetime, timezone
import hashlib
import json

from ..constants import (
    CERTIFICATE_VERSION,
    CONTEXT_SIZE,
    KEY_FILE,
    LOGBOOK_FILE,
    PUB_FILE,
    STACK_SIZE,
)
from ..helpers import HelperDeclaration, resolve_helpers
from . import crypto as _crypto
from .core import TOP, Known, Reachable, Unreached
from .program import Program, decode_instruction, encode_instruction
from .verifier import format_state, verify_program


def _timestamp():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def state_to_list(state):
    """Serialise a reachable state as ``["top", "0x1", ...]``."""

    return ["top" if value is TOP else hex(value.value) for value in state]


def state_from_list(values):
    return Reachable(
        tuple(TOP if value == "top" else Known(int(value, 16)) for value in values)
    )


def _states_payload(result):
    return {
        str(pc): state_to_list(state)
        for pc, state in sorted(result.states.items())
        if not isinstance(state, Unreached)
    }


def _payload_digest(payload):
    data = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _proof_payload(program, result, parameters):
    states = _states_payload(result)
    digest = _payload_digest(
        {"program": program.digest(), "parameters": parameters, "states": states}
    )
    return {
        "payload_digest": digest,
        "summary": {
            "instructions": len(program),
            "reachable": len(states),
            "diagnostics": list(result.diagnostics),
        },
        "ok": bool(result.ok),
    }


def build_certificate_document(program, result, *, stack_size=STACK_SIZE, helpers=None):
    """Create an in-memory certificate for an admitted program."""

    if not result.ok:
        raise ValueError(f"Cannot certify a rejected program: {result.message}")
    if not isinstance(program, Program):
        program = Program(program)

    table = resolve_helpers(helpers)
    parameters = {
        "stack_size": stack_size,
        "context_size": CONTEXT_SIZE,
        "helpers": [table[key].to_dict() for key in sorted(table)],
    }
    return {
        "warden_version": CERTIFICATE_VERSION,
        "timestamp": _timestamp(),
        "program": {
            "sha256": program.digest(),
            "instructions": [encode_instruction(inst).hex() for inst in program],
        },
        "parameters": parameters,
        "verdict": {"admitted": True, "visits": result.visits},
        "states": _states_payload(result),
        "proof": _proof_payload(program, result, parameters),
    }


def write_certificate_document(doc, filename):
    """Persist a certificate document to disk."""

    with open(filename, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)
    print(f"  ✓ Admission certificate exported → {filename}")
    return doc


def export_certificate(program, result, filename="program.warden.json", **kwargs):
    doc = build_certificate_document(program, result, **kwargs)
    return write_certificate_document(doc, filename)


def reconstruct_program(doc):
    """Rebuild the certified :class:`Program` and check its digest."""

    info = doc.get("program") or {}
    try:
        program = Program(
            decode_instruction(bytes.fromhex(text))
            for text in info.get("instructions", [])
        )
    except ValueError as exc:
        raise ValueError(f"Certificate program is malformed: {exc}") from exc
    if program.digest() != info.get("sha256"):
        raise ValueError("Certificate program digest mismatch")
    return program


def _validate_proof(stored, expected):
    if not stored:
        raise ValueError("Certificate missing proof")

    if not stored.get("ok"):
        raise ValueError(f"Certificate proof indicates failure: {stored.get('summary')}")

    if not expected.get("ok"):
        raise ValueError(
            "Certificate re-verification failed: "
            f"{expected['summary']['diagnostics'][0]}"
        )

    if stored.get("payload_digest") != expected["payload_digest"]:
        raise ValueError("Certificate proof digest mismatch")

    if stored.get("summary") != expected["summary"]:
        raise ValueError("Certificate proof summary mismatch")


def verify_certificate_document(doc):
    """Re-run the verifier on the certified program and compare the proof."""

    if not doc.get("proof"):
        raise ValueError("Warden certificate missing proof")

    program = reconstruct_program(doc)
    parameters = doc.get("parameters") or {}
    helpers = [HelperDeclaration.from_dict(h) for h in parameters.get("helpers", [])]
    stack_size = parameters.get("stack_size", STACK_SIZE)
    result = verify_program(program, stack_size=stack_size, helpers=helpers)

    expected_parameters = {
        "stack_size": stack_size,
        "context_size": CONTEXT_SIZE,
        "helpers": [h.to_dict() for h in sorted(helpers, key=lambda h: h.id)],
    }
    _validate_proof(doc["proof"], _proof_payload(program, result, expected_parameters))

    if doc.get("states") != _states_payload(result):
        raise ValueError("Certificate states do not match re-verification")

    return True


def load_certificate(filename):
    """Load and re-verify a certificate file."""

    with open(filename, "r", encoding="utf-8") as f:
        doc = json.load(f)
    verify_certificate_document(doc)
    return doc


def reverify_certificate(filename):
    """Load a certificate, re-verify it and print the recorded states."""

    doc = load_certificate(filename)
    print(f"Loaded Warden certificate v{doc['warden_version']} ({filename})")
    print(f"  ✓ Program {doc['program']['sha256'][:16]}… re-verified")
    for pc, values in sorted(doc["states"].items(), key=lambda item: int(item[0])):
        print(f"    {int(pc):>4}: {format_state(state_from_list(values))}")
    return doc


def canonicalize_certificate(doc):
    """
    Normalise a certificate so identical verification outcomes produce
    identical JSON, independent of key order and export time.
    """

    def sort_dict(d):
        if isinstance(d, dict):
            return {k: sort_dict(v) for k, v in sorted(d.items()) if k != "timestamp"}
        elif isinstance(d, list):
            return [sort_dict(x) for x in d]
        else:
            return d

    return sort_dict(doc)


def hash_certificate_document(doc):
    """Compute the SHA-256 of an in-memory certificate."""
    canon = canonicalize_certificate(doc)
    data = json.dumps(canon, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hash_certificate(filename):
    """Compute the SHA-256 of a certificate file."""
    doc = load_certificate(filename)
    h = hash_certificate_document(doc)
    print(f"SHA256({filename}) = {h}")
    return h


def diff_certificates(file_a, file_b):
    """Compare two certificate files and report program and state differences."""
    a = canonicalize_certificate(load_certificate(file_a))
    b = canonicalize_certificate(load_certificate(file_b))

    ha, hb = hash_certificate_document(a), hash_certificate_document(b)
    if ha == hb:
        print(f"✓ Certificates are identical ({ha})")
        return []

    print(f"✗ Certificates differ\n  {file_a[:30]}…: {ha}\n  {file_b[:30]}…: {hb}")
    differences = []

    if a["program"]["sha256"] != b["program"]["sha256"]:
        differences.append(
            "Program differs: "
            f"{len(a['program']['instructions'])} vs "
            f"{len(b['program']['instructions'])} slots"
        )
    if a["parameters"] != b["parameters"]:
        differences.append("Verification parameters differ")

    pcs = sorted(set(a["states"]) | set(b["states"]), key=int)
    for pc in pcs:
        sa, sb = a["states"].get(pc), b["states"].get(pc)
        if sa == sb:
            continue
        left = format_state(state_from_list(sa)) if sa else "unreached"
        right = format_state(state_from_list(sb)) if sb else "unreached"
        differences.append(f"PC {pc}: {left}  →  {right}")

    for line in differences:
        print(f"  • {line}")
    return differences


def record_admission(
    certificate_filename,
    result,
    *,
    logbook=LOGBOOK_FILE,
    key_file=KEY_FILE,
    pub_file=PUB_FILE,
):
    """Append a signed entry for an admitted program to the logbook."""
    sha = hash_certificate(certificate_filename)
    sig = _crypto.sign_hash(sha, key_file, pub_file)

    entry = {
        "timestamp": _timestamp(),
        "filename": str(certificate_filename),
        "hash": sha,
        "signature": sig,
        "admitted": bool(result.ok),
        "reachable": len(result.reachable_pcs()),
        "visits": result.visits,
    }

    with open(logbook, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")

    print(f"  📜 Recorded and signed admission → {logbook}")
    return entry


def show_logbook(limit=10, logbook=LOGBOOK_FILE):
    """Display recent logbook entries."""

    try:
        with open(logbook, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        print("No logbook yet.")
        return []

    entries = [json.loads(line) for line in lines[-limit:] if line.strip()]
    print(f"\nWarden Logbook: last {len(entries)} entries:")
    for e in reversed(entries):
        print(
            f"• {e['timestamp']}  {e['filename']}  "
            f"[{'admitted' if e['admitted'] else 'rejected'}]  {e['hash'][:12]}…"
        )
        print(f"    reachable: {e['reachable']}  visits: {e['visits']}")
    return entries


__all__ = [
    "build_certificate_document",
    "canonicalize_certificate",
    "diff_certificates",
    "export_certificate",
    "hash_certificate",
    "hash_certificate_document",
    "load_certificate",
    "reconstruct_program",
    "record_admission",
    "reverify_certificate",
    "show_logbook",
    "state_from_list",
    "state_to_list",
    "verify_certificate_document",
    "write_certificate_document",
]
