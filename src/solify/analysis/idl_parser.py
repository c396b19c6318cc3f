"""
IDL Parser for Anchor programs.

Parses Anchor IDL JSON files (legacy and 0.30+ formats) into an immutable
InterfaceModel: instruction signatures, account usages with their PDA seeds,
argument types and declared constraints, and declared errors.
"""

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from solders.pubkey import Pubkey

from ..errors import ParseError
from .models import (
    AccountUsage,
    ArgumentConstraints,
    ArgumentSpec,
    CompositeKind,
    DataType,
    DerivedAddressSpec,
    ErrorDef,
    InstructionSpec,
    InterfaceModel,
    SeedSource,
    TypeDef,
    TypeKind,
)

logger = logging.getLogger(__name__)


INTEGER_WIDTHS = (8, 16, 32, 64, 128, 256)

# Doc-comment annotations, e.g. "@min 1" or "@max_len 32"
DOC_CONSTRAINT_RE = re.compile(
    r"@(min|max|max_len|maxLength|nonzero|error|message|allowed)\b[ \t:=]*([^@]*)"
)

# Account relations in docs, e.g. "has_one = authority"
HAS_ONE_RE = re.compile(r"\bhas_one\s*=\s*\"?(\w+)")


def to_snake_case(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, c in enumerate(name):
        if c.isupper() and i > 0 and name[i - 1] != "_":
            result.append("_")
        result.append(c.lower())
    return "".join(result)


def compute_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator: sha256("global:<snake_case_name>")[:8]."""
    preimage = f"global:{to_snake_case(name)}"
    return hashlib.sha256(preimage.encode()).digest()[:8]


class IDLParser:
    """
    Parser for Anchor IDL files.

    Handles both the legacy layout (isMut/isSigner, top-level name) and the
    0.30+ layout (writable/signer, metadata block, top-level address).
    Nested account groups are flattened. Any structural problem raises
    ParseError naming the offending element.
    """

    def __init__(self):
        self.idl: Optional[Dict] = None

    def parse_file(self, path: Union[str, Path]) -> InterfaceModel:
        """Parse an IDL file from disk."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"IDL file not found: {path}")

        with open(path, "r") as f:
            return self.parse_json(f.read())

    def parse_json(self, text: str) -> InterfaceModel:
        """Parse an IDL from its JSON text."""
        try:
            idl_data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}") from e
        return self.parse(idl_data)

    def parse(self, idl: Dict) -> InterfaceModel:
        """Parse an IDL dictionary."""
        if not isinstance(idl, dict):
            raise ParseError("IDL root must be a JSON object")
        self.idl = idl

        metadata = idl.get("metadata") or {}
        raw_instructions = idl.get("instructions")
        if not isinstance(raw_instructions, list):
            raise ParseError("IDL is missing an 'instructions' list")
        if not raw_instructions:
            raise ParseError("IDL must have at least one instruction")

        program_id = idl.get("address") or metadata.get("address")
        if program_id is not None:
            program_id = str(self._parse_pubkey(program_id, "program address"))

        instructions = tuple(self._parse_instruction(ix) for ix in raw_instructions)
        names = [ix.name for ix in instructions]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ParseError(f"Duplicate instruction names: {', '.join(duplicates)}", duplicates)

        model = InterfaceModel(
            name=metadata.get("name") or idl.get("name") or "unknown",
            version=metadata.get("version") or idl.get("version"),
            program_id=program_id,
            instructions=instructions,
            account_types=tuple(self._require_name(a, "account type") for a in idl.get("accounts", [])),
            types=tuple(self._parse_type_def(t) for t in idl.get("types", [])),
            errors=tuple(self._parse_error(e) for e in idl.get("errors", [])),
            raw_idl=idl,
        )
        logger.debug(
            "Parsed IDL '%s': %d instructions, %d types, %d errors",
            model.name, len(model.instructions), len(model.types), len(model.errors),
        )
        return model

    def _require_name(self, data: Any, what: str) -> str:
        if not isinstance(data, dict) or not data.get("name"):
            raise ParseError(f"{what} is missing a name: {data!r}")
        return data["name"]

    def _parse_instruction(self, ix_data: Dict) -> InstructionSpec:
        """Parse a single instruction from IDL."""
        name = self._require_name(ix_data, "instruction")

        arguments = tuple(
            self._parse_argument(arg, name) for arg in ix_data.get("args", [])
        )

        accounts: List[AccountUsage] = []
        raw_accounts = self._flatten_accounts(ix_data.get("accounts", []), name)
        fixed = {a.get("name"): a.get("address") for a in raw_accounts if a.get("address")}
        for acc_data in raw_accounts:
            accounts.append(self._parse_instruction_account(acc_data, name, fixed))

        seen = set()
        for acc in accounts:
            if acc.name in seen:
                raise ParseError(f"Duplicate account '{acc.name}' in instruction '{name}'", [name, acc.name])
            seen.add(acc.name)

        discriminator = None
        if isinstance(ix_data.get("discriminator"), list):
            discriminator = bytes(ix_data["discriminator"])
        else:
            discriminator = compute_discriminator(name)

        return InstructionSpec(
            name=name,
            arguments=arguments,
            accounts=tuple(accounts),
            docs=tuple(ix_data.get("docs", [])),
            discriminator=discriminator,
        )

    def _flatten_accounts(self, items: List[Dict], instruction: str) -> List[Dict]:
        """Flatten nested account groups into one ordered list."""
        flat = []
        for item in items:
            if not isinstance(item, dict):
                raise ParseError(f"Malformed account entry in '{instruction}': {item!r}", [instruction])
            if isinstance(item.get("accounts"), list):
                flat.extend(self._flatten_accounts(item["accounts"], instruction))
            else:
                flat.append(item)
        return flat

    def _parse_instruction_account(
        self,
        acc_data: Dict,
        instruction: str,
        fixed_addresses: Dict[str, str],
    ) -> AccountUsage:
        """Parse an account from an instruction's account list."""
        name = self._require_name(acc_data, f"account in '{instruction}'")

        # Old format: isMut, isSigner; new format: writable, signer
        is_mut = acc_data.get("writable", acc_data.get("isMut", False))
        is_signer = acc_data.get("signer", acc_data.get("isSigner", False))
        is_optional = acc_data.get("optional", acc_data.get("isOptional", False))

        derived = None
        if acc_data.get("pda"):
            derived = self._parse_pda(acc_data["pda"], instruction, name, fixed_addresses)

        return AccountUsage(
            name=name,
            key=acc_data.get("canonicalKey") or acc_data.get("key") or name,
            is_mut=bool(is_mut),
            is_signer=bool(is_signer),
            is_optional=bool(is_optional),
            address=acc_data.get("address"),
            docs=tuple(acc_data.get("docs", [])),
            derived=derived,
            relations=self._parse_relations(acc_data, instruction, name),
        )

    def _parse_relations(self, acc_data: Dict, instruction: str, account: str) -> Tuple[str, ...]:
        """`has_one` targets: the 0.30+ `relations` list plus `has_one = x` in docs."""
        declared = acc_data.get("relations", [])
        if not isinstance(declared, list) or not all(isinstance(r, str) for r in declared):
            raise ParseError(
                f"Relations of '{account}' in '{instruction}' must be a list of names",
                [instruction, account],
            )

        relations = list(declared)
        for doc in acc_data.get("docs", []):
            for target in HAS_ONE_RE.findall(doc):
                if target not in relations:
                    relations.append(target)
        return tuple(relations)

    def _parse_pda(
        self,
        pda: Dict,
        instruction: str,
        account: str,
        fixed_addresses: Dict[str, str],
    ) -> DerivedAddressSpec:
        """Parse the seeds and owning program of a PDA account."""
        if not isinstance(pda.get("seeds"), list):
            raise ParseError(f"PDA '{account}' in '{instruction}' has no seed list", [instruction, account])

        seeds = tuple(self._parse_seed(s, instruction, account) for s in pda["seeds"])

        owning_program = None
        program = pda.get("program") or pda.get("programId")
        if program:
            kind = program.get("kind")
            if kind == "const":
                owning_program = self._const_pubkey(program.get("value"), instruction, account)
            elif kind == "account":
                path = program.get("path", "")
                owning_program = fixed_addresses.get(path.split(".", 1)[0])
                if owning_program is None:
                    raise ParseError(
                        f"PDA '{account}' in '{instruction}' is owned by account '{path}' "
                        "which has no fixed address",
                        [instruction, account, path],
                    )
            else:
                raise ParseError(f"Unsupported PDA program kind '{kind}' for '{account}'", [account])

        return DerivedAddressSpec(seeds=seeds, owning_program=owning_program)

    def _parse_seed(self, seed: Dict, instruction: str, account: str) -> SeedSource:
        kind = seed.get("kind") if isinstance(seed, dict) else None
        if kind in ("const", "constant"):
            return SeedSource.literal(self._const_bytes(seed, instruction, account))
        if kind in ("arg", "argument"):
            if not seed.get("path"):
                raise ParseError(f"Argument seed without path on '{account}'", [instruction, account])
            return SeedSource.argument(seed["path"])
        if kind == "account":
            if not seed.get("path"):
                raise ParseError(f"Account seed without path on '{account}'", [instruction, account])
            return SeedSource.account(seed["path"])
        raise ParseError(
            f"Unknown seed kind {kind!r} on '{account}' in '{instruction}'",
            [instruction, account],
        )

    def _const_bytes(self, seed: Dict, instruction: str, account: str) -> bytes:
        """Raw bytes of a constant seed."""
        value = seed.get("value")
        seed_type = seed.get("type")
        if isinstance(value, list):
            try:
                return bytes(value)
            except (TypeError, ValueError) as e:
                raise ParseError(f"Invalid constant seed bytes on '{account}': {e}", [account]) from e
        if isinstance(value, str):
            # Legacy IDLs spell constants by type
            if seed_type in ("publicKey", "pubkey"):
                return bytes(self._parse_pubkey(value, account))
            return value.encode("utf-8")
        if isinstance(value, int) and isinstance(seed_type, str):
            data_type = self._parse_type(seed_type, account)
            if data_type.is_integer:
                signed = data_type.kind == TypeKind.SIGNED
                return value.to_bytes(data_type.byte_width, "little", signed=signed)
        raise ParseError(f"Unsupported constant seed {seed!r} on '{account}' in '{instruction}'", [account])

    def _const_pubkey(self, value: Any, instruction: str, account: str) -> str:
        if isinstance(value, list) and len(value) == 32:
            return str(Pubkey(bytes(value)))
        if isinstance(value, str):
            return str(self._parse_pubkey(value, account))
        raise ParseError(f"Invalid owning program for '{account}' in '{instruction}'", [account])

    def _parse_pubkey(self, value: str, context: str) -> Pubkey:
        try:
            return Pubkey.from_string(value)
        except ValueError as e:
            raise ParseError(f"Invalid public key {value!r} in '{context}'", [context]) from e

    def _parse_argument(self, arg_data: Dict, instruction: str) -> ArgumentSpec:
        """Parse an instruction argument."""
        name = self._require_name(arg_data, f"argument in '{instruction}'")
        if "type" not in arg_data:
            raise ParseError(f"Argument '{name}' in '{instruction}' has no type", [instruction, name])

        docs = tuple(arg_data.get("docs", []))
        data_type = self._parse_type(arg_data["type"], name)
        return ArgumentSpec(
            name=name,
            data_type=data_type,
            constraints=self._parse_constraints(arg_data.get("constraints"), docs, name, data_type),
            docs=docs,
        )

    def _parse_type(self, raw: Any, context: str) -> DataType:
        """Parse a (possibly nested) IDL type."""
        if isinstance(raw, str):
            if raw == "string":
                return DataType.string()
            if raw == "bool":
                return DataType.boolean()
            if raw in ("publicKey", "pubkey"):
                return DataType.pubkey()
            if raw == "bytes":
                return DataType(
                    TypeKind.COMPOSITE,
                    composite=CompositeKind.BYTES,
                    inner=DataType.unsigned(8),
                    raw="bytes",
                )
            if raw[:1] in ("u", "i") and raw[1:].isdigit() and int(raw[1:]) in INTEGER_WIDTHS:
                width = int(raw[1:])
                return DataType.unsigned(width) if raw[0] == "u" else DataType.signed(width)
            return DataType(TypeKind.UNSUPPORTED, raw=raw)

        if isinstance(raw, dict):
            if "vec" in raw:
                return DataType(
                    TypeKind.COMPOSITE,
                    composite=CompositeKind.VEC,
                    inner=self._parse_type(raw["vec"], context),
                )
            if "option" in raw or "coption" in raw:
                inner = raw.get("option", raw.get("coption"))
                return DataType(
                    TypeKind.COMPOSITE,
                    composite=CompositeKind.OPTION,
                    inner=self._parse_type(inner, context),
                )
            if "array" in raw:
                spec = raw["array"]
                if not isinstance(spec, list) or len(spec) != 2 or not isinstance(spec[1], int):
                    raise ParseError(f"Malformed array type on '{context}': {raw!r}", [context])
                return DataType(
                    TypeKind.COMPOSITE,
                    composite=CompositeKind.ARRAY,
                    inner=self._parse_type(spec[0], context),
                    length=spec[1],
                )
            if "defined" in raw:
                defined = raw["defined"]
                if isinstance(defined, dict):
                    defined = defined.get("name")
                if not isinstance(defined, str) or not defined:
                    raise ParseError(f"Malformed defined type on '{context}': {raw!r}", [context])
                return DataType(TypeKind.COMPOSITE, composite=CompositeKind.DEFINED, defined=defined)

        raise ParseError(f"Malformed type on '{context}': {raw!r}", [context])

    def _parse_constraints(
        self,
        declared: Optional[Dict],
        docs: Tuple[str, ...],
        context: str,
        data_type: Optional[DataType] = None,
    ) -> ArgumentConstraints:
        """Merge an explicit constraints object with doc-comment annotations."""
        values: Dict[str, Any] = {}

        for doc in docs:
            for match in DOC_CONSTRAINT_RE.finditer(doc):
                key, rest = match.group(1), match.group(2).strip()
                if key == "nonzero":
                    values["nonzero"] = True
                elif key in ("min", "max", "max_len", "maxLength"):
                    number = rest.split()[0] if rest else ""
                    try:
                        values["max_length" if key.startswith("max_") or key == "maxLength" else key] = int(number)
                    except ValueError as e:
                        raise ParseError(f"Invalid @{key} annotation on '{context}': {doc!r}", [context]) from e
                elif key == "allowed":
                    values["allowed"] = tuple(v.strip() for v in rest.split(",") if v.strip())
                elif key == "error":
                    values["error"] = rest.split()[0] if rest else None
                elif key == "message":
                    values["message"] = rest or None

        if declared:
            if not isinstance(declared, dict):
                raise ParseError(f"Constraints on '{context}' must be an object", [context])
            for key in ("min", "max"):
                if key in declared:
                    values[key] = self._require_int(declared[key], key, context)
            if "nonzero" in declared:
                values["nonzero"] = bool(declared["nonzero"])
            length = declared.get("maxLength", declared.get("max_length"))
            if length is not None:
                values["max_length"] = self._require_int(length, "maxLength", context)
            allowed = declared.get("allowed", declared.get("enum"))
            if allowed is not None:
                values["allowed"] = tuple(allowed)
            for key in ("message", "error"):
                if declared.get(key):
                    values[key] = declared[key]

        if values.get("allowed") is not None and data_type is not None:
            values["allowed"] = self._coerce_allowed(values["allowed"], data_type, context)

        constraints = ArgumentConstraints(**values)
        if constraints.min is not None and constraints.max is not None and constraints.min > constraints.max:
            raise ParseError(f"Constraint min > max on '{context}'", [context])
        return constraints

    def _coerce_allowed(self, allowed: Tuple[Any, ...], data_type: DataType, context: str) -> Tuple[Any, ...]:
        """Permitted values as the argument's own type; doc annotations arrive as text."""
        coerced = []
        for value in allowed:
            if data_type.is_integer and isinstance(value, str):
                try:
                    value = int(value, 0)
                except ValueError as e:
                    raise ParseError(f"Allowed value {value!r} on '{context}' is not an integer", [context]) from e
            elif data_type.kind == TypeKind.BOOLEAN and isinstance(value, str):
                if value.lower() not in ("true", "false"):
                    raise ParseError(f"Allowed value {value!r} on '{context}' is not a boolean", [context])
                value = value.lower() == "true"
            elif data_type.kind == TypeKind.PUBKEY:
                value = str(self._parse_pubkey(str(value), context))
            coerced.append(value)
        return tuple(coerced)

    def _require_int(self, value: Any, key: str, context: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ParseError(f"Constraint '{key}' on '{context}' must be an integer", [context])
        return value

    def _parse_type_def(self, type_data: Dict) -> TypeDef:
        """Parse a declared struct or enum."""
        name = self._require_name(type_data, "type definition")
        body = type_data.get("type") or {}
        kind = body.get("kind")

        if kind == "struct":
            fields = []
            for i, field_data in enumerate(body.get("fields", [])):
                if isinstance(field_data, dict) and "name" in field_data:
                    fields.append((field_data["name"], self._parse_type(field_data.get("type"), name)))
                else:
                    # Tuple struct: fields are bare types
                    fields.append((f"_{i}", self._parse_type(field_data, name)))
            return TypeDef(name=name, kind="struct", fields=tuple(fields))

        if kind == "enum":
            variants = tuple(self._require_name(v, f"variant of '{name}'") for v in body.get("variants", []))
            return TypeDef(name=name, kind="enum", variants=variants)

        if kind == "type" and "alias" in body:
            return TypeDef(name=name, kind="alias", fields=(("value", self._parse_type(body["alias"], name)),))

        raise ParseError(f"Unsupported type definition kind {kind!r} for '{name}'", [name])

    def _parse_error(self, error_data: Dict) -> ErrorDef:
        name = self._require_name(error_data, "error")
        code = error_data.get("code")
        if not isinstance(code, int):
            raise ParseError(f"Error '{name}' has no numeric code", [name])
        return ErrorDef(code=code, name=name, message=error_data.get("msg", "") or "")
