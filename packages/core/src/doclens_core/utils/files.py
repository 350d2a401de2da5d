DOCUMENT_EXTENSIONS = {
    ".md",
    ".markdown",
    ".mdx",
    ".rst",
    ".txt",
    ".adoc",
    ".asciidoc",
    ".dita",
    ".ditamap",
    ".html",
    ".htm",
    ".xml",
}


def is_document_file(file_name: str) -> bool:
    return any(file_name.lower().endswith(ext) for ext in DOCUMENT_EXTENSIONS)
