"""
Export saved results as plain text or EndNote XML.
"""
from typing import List

from lxml import etree

from litdraft.models import Document, PUBMED_ARTICLE_URL

ENDNOTE_JOURNAL_ARTICLE = "17"


def to_plain_text(documents: List[Document]) -> str:
    """One block per Document, separated by a blank line."""
    blocks = []
    for idx, doc in enumerate(documents, 1):
        lines = [f"{idx}. {doc.title}"]
        if doc.authors:
            lines.append(f"Authors: {', '.join(doc.authors)}")
        if doc.journal:
            lines.append(f"Journal: {doc.journal}")
        if doc.year:
            lines.append(f"Year: {doc.year}")
        lines.append(f"PMID: {doc.id}")
        lines.append(f"URL: {doc.external_ref}")
        if doc.abstract:
            lines.append(f"Abstract: {doc.abstract}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + ("\n" if blocks else "")


def to_endnote_xml(documents: List[Document]) -> str:
    """EndNote XML (<xml><records><record>...) importable by EndNote and Zotero."""
    root = etree.Element("xml")
    records = etree.SubElement(root, "records")

    for doc in documents:
        record = etree.SubElement(records, "record")

        ref_type = etree.SubElement(record, "ref-type", name="Journal Article")
        ref_type.text = ENDNOTE_JOURNAL_ARTICLE

        authors = etree.SubElement(etree.SubElement(record, "contributors"), "authors")
        for name in doc.authors:
            etree.SubElement(authors, "author").text = name

        etree.SubElement(etree.SubElement(record, "titles"), "title").text = doc.title

        if doc.year:
            etree.SubElement(etree.SubElement(record, "dates"), "year").text = str(doc.year)

        if doc.journal:
            etree.SubElement(etree.SubElement(record, "periodical"), "full-title").text = doc.journal

        etree.SubElement(record, "accession-num").text = doc.id

        related_urls = etree.SubElement(etree.SubElement(record, "urls"), "related-urls")
        etree.SubElement(related_urls, "url").text = PUBMED_ARTICLE_URL.format(doc.id)

        if doc.abstract:
            etree.SubElement(record, "abstract").text = doc.abstract

    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8").decode("utf-8")
