"""
SKA Workbench — XML Document Reader

Parses ``<skaconfig>`` files into DocumentModel instances.

Missing elements leave model defaults in place; numeric attributes that
are missing or malformed fall back to their defaults instead of failing
the whole file. Documents with a DOCTYPE declaration are rejected so no
external entity is ever resolved.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as xml_et
from pathlib import Path

import structlog

from skabench.primitives.common import Environment, OperationKind, SectionKind
from skabench.primitives.document import (
    Boundary,
    DocumentModel,
    EcParameters,
    Group,
    KeysBlock,
    Operation,
    Operations,
    Personalization,
    Section,
)
from skabench.primitives.identity import IdentityRecord
from skabench.systems.codec.errors import DocumentParseError

logger = structlog.get_logger("skabench.codec.reader")

ROOT_TAG = "skaconfig"
PERSONALIZATION_TAG = "personalization"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION_ATTR = f"{{{XSI_NAMESPACE}}}noNamespaceSchemaLocation"

_DOCTYPE = re.compile(r"<!DOCTYPE", re.IGNORECASE)


# ─── Attribute helpers ───────────────────────────────────────────


def _attr(el: xml_et.Element, name: str) -> str:
    return el.get(name, "")


def _int_attr(el: xml_et.Element, name: str, default: int) -> int:
    value = el.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _bool_attr(el: xml_et.Element, name: str, default: bool = False) -> bool:
    value = el.get(name, "").strip().lower()
    if not value:
        return default
    return value == "true"


def _text(el: xml_et.Element | None) -> str:
    if el is None:
        return ""
    return "".join(el.itertext()).strip()


# ─── Reader ──────────────────────────────────────────────────────


class XmlDocumentReader:
    """Reads SKA XML configuration files."""

    def __init__(self, environment: Environment = Environment.PRODUCTION) -> None:
        self._environment = environment
        self._logger = logger.bind(component="xml_reader")

    def read(self, path: Path) -> DocumentModel:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self._logger.warning("document_read_failed", path=str(path), error=str(exc))
            raise DocumentParseError(path, str(exc)) from exc

        document = self.read_text(text, source=path)
        self._logger.debug(
            "document_read",
            path=str(path),
            module=document.module_name,
            version=document.version,
            users=len(document.users),
        )
        return document

    def read_text(self, text: str, source: Path | str = "<string>") -> DocumentModel:
        if _DOCTYPE.search(text):
            self._logger.warning("document_parse_failed", path=str(source), error="doctype")
            raise DocumentParseError(source, "DOCTYPE declarations are not allowed")
        try:
            root = xml_et.fromstring(text)
        except xml_et.ParseError as exc:
            self._logger.warning("document_parse_failed", path=str(source), error=str(exc))
            raise DocumentParseError(source, f"invalid XML: {exc}") from exc

        if root.tag != ROOT_TAG:
            raise DocumentParseError(source, f"expected <{ROOT_TAG}> root, found <{root.tag}>")

        document = self._read_root(root)
        apply_load_environment(document, self._environment)
        return document

    # ─── Structure ──────────────────────────────────────────────

    def _read_root(self, root: xml_et.Element) -> DocumentModel:
        document = DocumentModel(
            module_name=_attr(root, "moduleName"),
            version=_int_attr(root, "version", 1),
            schema_location=root.get(SCHEMA_LOCATION_ATTR, ""),
        )

        for kind in SectionKind:
            el = root.find(kind.value)
            if el is not None:
                setattr(document, _SECTION_FIELDS[kind], self._read_section(el))

        keys_el = root.find("keys")
        if keys_el is not None:
            document.keys = self._read_keys(keys_el)

        users_el = root.find("users")
        if users_el is not None:
            document.users = [self._read_user(u) for u in users_el.findall("user")]

        return document

    def _read_section(self, el: xml_et.Element) -> Section:
        return Section(
            blocked_on_initialize=_bool_attr(el, "blockedOnInitialize"),
            key_label=_attr(el, "keyLabel"),
            start_validity=_attr(el, "startValidity"),
            end_validity=_attr(el, "endValidity"),
            ec_parameters=self._read_ec_parameters(el),
            operations=self._read_operations(el.find("operations")),
        )

    def _read_keys(self, keys_el: xml_et.Element) -> KeysBlock:
        block = KeysBlock()
        for child in keys_el:
            if child.tag == PERSONALIZATION_TAG:
                block.personalization = Personalization(
                    enabled=True,
                    use_kek=_bool_attr(child, "useKek", default=True),
                    kek_label=_attr(child, "kekLabel"),
                    ec_parameters=self._read_ec_parameters(child),
                )
            elif not block.child_name:
                block.child_name = child.tag
                block.operations = self._read_operations(child.find("operations"))
                block.ec_parameters = self._read_ec_parameters(child)
        return block

    def _read_ec_parameters(self, parent: xml_et.Element) -> EcParameters:
        el = parent.find("ecParameters")
        if el is None:
            return EcParameters()
        return EcParameters(curve_name=_attr(el, "curveName"), pem_text=_text(el))

    def _read_operations(self, el: xml_et.Element | None) -> Operations:
        operations = Operations()
        if el is None:
            return operations
        for kind in OperationKind:
            op_el = el.find(kind.value)
            if op_el is not None:
                setattr(operations, kind.value, self._read_operation(op_el))
        return operations

    def _read_operation(self, el: xml_et.Element) -> Operation:
        return Operation(
            delay_millis=_int_attr(el, "delayMillis", 0),
            time_limit_millis=_int_attr(el, "timeLimitMillis", 0),
            boundaries=[
                Boundary(groups=[self._read_group(g) for g in b.findall("group")])
                for b in el.findall("boundary")
            ],
        )

    def _read_group(self, el: xml_et.Element) -> Group:
        members_el = el.find("members")
        keys_el = el.find("keys")
        return Group(
            quorum=max(0, _int_attr(el, "quorum", 0)),
            name=_attr(el, "name"),
            member_cns=(
                [_text(m) for m in members_el.iter("membercn")] if members_el is not None else []
            ),
            key_labels=(
                [_text(k) for k in keys_el.iter("keylabel")] if keys_el is not None else []
            ),
        )

    def _read_user(self, el: xml_et.Element) -> IdentityRecord:
        return IdentityRecord(
            cn=_attr(el, "cn"),
            name=_attr(el, "name"),
            email=_attr(el, "email"),
            organisation=_attr(el, "organisation"),
            user_id=_attr(el, "userId"),
            certificate=_text(el.find("cert")),
        )


_SECTION_FIELDS: dict[SectionKind, str] = {
    SectionKind.ORGANIZATION: "organization",
    SectionKind.SKA_PLUS: "ska_plus",
    SectionKind.SKA_MODIFY: "ska_modify",
}


def apply_load_environment(document: DocumentModel, environment: Environment) -> None:
    """
    Interpret the document's ``userId`` attributes for ``environment``.

    Files carry a single userId per user. For integration documents that
    value belongs in ``user_id_integration``; the production field is
    cleared.
    """
    document.environment = environment
    if environment is not Environment.INTEGRATION:
        return
    for user in document.users:
        if user.user_id:
            user.user_id_integration = user.user_id
            user.user_id = ""
