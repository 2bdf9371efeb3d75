"""
SKA Workbench — XML Document Writer

Serializes a DocumentModel back to ``<skaconfig>`` XML with four-space
indentation. Each user's ``userId`` attribute is taken from the field that
matches the document's environment.
"""

from __future__ import annotations

import xml.etree.ElementTree as xml_et
from pathlib import Path

import structlog

from skabench.primitives.common import OperationKind, SectionKind
from skabench.primitives.document import (
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
from skabench.systems.codec.errors import DocumentWriteError
from skabench.systems.codec.reader import (
    PERSONALIZATION_TAG,
    ROOT_TAG,
    SCHEMA_LOCATION_ATTR,
    XSI_NAMESPACE,
)

logger = structlog.get_logger("skabench.codec.writer")

xml_et.register_namespace("xsi", XSI_NAMESPACE)


def _bool(value: bool) -> str:
    return "true" if value else "false"


class XmlDocumentWriter:
    """Writes SKA XML configuration files."""

    def __init__(self, indent: str = "    ") -> None:
        self._indent = indent
        self._logger = logger.bind(component="xml_writer")

    def write(self, document: DocumentModel, path: Path) -> None:
        path = Path(path)
        tree = xml_et.ElementTree(self.build(document))
        xml_et.indent(tree, space=self._indent)
        try:
            tree.write(path, encoding="UTF-8", xml_declaration=True)
        except OSError as exc:
            self._logger.error("document_write_failed", path=str(path), error=str(exc))
            raise DocumentWriteError(path, str(exc)) from exc

        self._logger.debug(
            "document_written",
            path=str(path),
            module=document.module_name,
            version=document.version,
            users=len(document.users),
        )

    def to_string(self, document: DocumentModel) -> str:
        root = self.build(document)
        xml_et.indent(root, space=self._indent)
        return xml_et.tostring(root, encoding="unicode")

    # ─── Structure ──────────────────────────────────────────────

    def build(self, document: DocumentModel) -> xml_et.Element:
        root = xml_et.Element(ROOT_TAG)
        if document.schema_location:
            root.set(SCHEMA_LOCATION_ATTR, document.schema_location)
        root.set("moduleName", document.module_name)
        root.set("version", str(document.version))

        for kind in SectionKind:
            self._write_section(root, kind.value, document.section(kind))
        self._write_keys(root, document.keys)

        users_el = xml_et.SubElement(root, "users")
        for user in document.users:
            self._write_user(users_el, user, user.user_id_for(document.environment))
        return root

    def _write_section(self, parent: xml_et.Element, tag: str, section: Section) -> None:
        el = xml_et.SubElement(parent, tag)
        el.set("blockedOnInitialize", _bool(section.blocked_on_initialize))
        el.set("keyLabel", section.key_label)
        el.set("startValidity", section.start_validity)
        el.set("endValidity", section.end_validity)
        self._write_ec_parameters(el, section.ec_parameters)
        self._write_operations(el, section.operations)

    def _write_keys(self, parent: xml_et.Element, keys: KeysBlock) -> None:
        # No child name means there is no keys block in the document.
        if not keys.child_name and not keys.personalization.enabled:
            return
        keys_el = xml_et.SubElement(parent, "keys")
        if keys.child_name:
            child = xml_et.SubElement(keys_el, keys.child_name)
            self._write_operations(child, keys.operations)
            self._write_ec_parameters(child, keys.ec_parameters)
        if keys.personalization.enabled:
            self._write_personalization(keys_el, keys.personalization)

    def _write_personalization(self, parent: xml_et.Element, perso: Personalization) -> None:
        el = xml_et.SubElement(parent, PERSONALIZATION_TAG)
        el.set("useKek", _bool(perso.use_kek))
        el.set("kekLabel", perso.kek_label)
        self._write_ec_parameters(el, perso.ec_parameters)

    def _write_ec_parameters(self, parent: xml_et.Element, ec: EcParameters) -> None:
        el = xml_et.SubElement(parent, "ecParameters")
        if ec.curve_name:
            el.set("curveName", ec.curve_name)
        if ec.pem_text:
            el.text = ec.pem_text

    def _write_operations(self, parent: xml_et.Element, operations: Operations) -> None:
        ops_el = xml_et.SubElement(parent, "operations")
        for kind in OperationKind:
            self._write_operation(ops_el, kind.value, operations.get(kind))

    def _write_operation(self, parent: xml_et.Element, tag: str, operation: Operation) -> None:
        el = xml_et.SubElement(parent, tag)
        el.set("delayMillis", str(operation.delay_millis))
        el.set("timeLimitMillis", str(operation.time_limit_millis))
        for boundary in operation.boundaries:
            boundary_el = xml_et.SubElement(el, "boundary")
            for group in boundary.groups:
                self._write_group(boundary_el, group)

    def _write_group(self, parent: xml_et.Element, group: Group) -> None:
        el = xml_et.SubElement(parent, "group")
        el.set("quorum", str(group.quorum))
        el.set("name", group.name)
        if group.member_cns:
            members_el = xml_et.SubElement(el, "members")
            for cn in group.member_cns:
                xml_et.SubElement(members_el, "membercn").text = cn
        if group.key_labels:
            keys_el = xml_et.SubElement(el, "keys")
            for label in group.key_labels:
                xml_et.SubElement(keys_el, "keylabel").text = label

    def _write_user(self, parent: xml_et.Element, user: IdentityRecord, user_id: str) -> None:
        el = xml_et.SubElement(parent, "user")
        el.set("email", user.email)
        el.set("userId", user_id)
        el.set("cn", user.cn)
        el.set("name", user.name)
        el.set("organisation", user.organisation)
        if user.certificate:
            xml_et.SubElement(el, "cert").text = f"\n{user.certificate}\n"
