#!/usr/bin/env python

import os, os.path, re, sys, argparse

# Shared by every generated header, so the struct is declared once per
# translation unit no matter how many tables are included.
FILE_TOC_GUARD = "EMBEDDED_FILE_TOC_H_"

HEADER_TEMPLATE = """// Automatically generated by gen_embedded.py

#ifndef %(toc_guard)s
#define %(toc_guard)s

#include <cstddef>

struct FileToc {
  const char* name;
  const char* data;
  size_t size;
  // Not computed, kept for compatibility with older consumers.
  unsigned char md5digest[16];
};

#endif  // %(toc_guard)s

#ifndef %(guard)s
#define %(guard)s

"""

HEADER_NAMESPACE_BEGIN = """namespace %s {
"""

HEADER_DECLARATIONS = """
const FileToc* %(toc)s_create();
size_t %(toc)s_size();
"""

HEADER_NAMESPACE_END = """
}  // namespace %s
"""

HEADER_FOOTER = """
#endif  // %s
"""

SOURCE_TEMPLATE = """// Automatically generated by gen_embedded.py

#include "%s.h"

#include <cstddef>
#include <iterator>
#include <string_view>

"""

SOURCE_NAMESPACE_BEGIN = """namespace %s {

"""

DATA_BEGIN = 'constexpr std::string_view %s = {"'
DATA_END = '", %d};\n'

TOC_BEGIN = """
constexpr FileToc kToc[] = {
"""

TOC_ENTRY = """    {"%s", %s.data(), %s.size(), {}},
"""

TOC_END = """
    // Terminate array
    {nullptr, nullptr, 0, {}},
};

const FileToc* %(toc)s_create() {
  return kToc;
}

size_t %(toc)s_size() {
  return std::size(kToc) - 1;
}
"""

SOURCE_NAMESPACE_END = """
}  // namespace %s
"""

TOC_ARRAY = "kToc"

READ_SIZE = 4096

NAMED_ESCAPES = {0x00: "0", 0x0a: "n", 0x0d: "r", 0x09: "t"}
QUOTED_ESCAPES = b"\"'\\?"
OCTAL_DIGITS = b"01234567"


def sanitize(text):
    # Per byte, so a multibyte character becomes one underscore per byte.
    return re.sub(b"[^A-Za-z0-9]", b"_", os.fsencode(text)).decode("ascii")


def toc_identifier(name):
    return sanitize(name.replace("-", "_"))


def header_guard(package, toc_ident):
    return sanitize("%s_%s_H_" % (package, toc_ident))


def data_identifier(path):
    return sanitize("k" + os.path.basename(path))


def _classify(c):
    if c in NAMED_ESCAPES or c in QUOTED_ESCAPES:
        return 2
    if 0x20 <= c < 0x7f:
        return 1
    return 4


# Byte value -> number of characters it takes inside a string literal.
ESCAPED_LEN = tuple(_classify(c) for c in range(256))


def _render(c):
    char_len = ESCAPED_LEN[c]
    if char_len == 1:
        return chr(c)
    if char_len == 2:
        return "\\" + NAMED_ESCAPES.get(c, chr(c))
    return "\\%c%c%c" % (ord("0") + c // 64, ord("0") + (c % 64) // 8, ord("0") + c % 8)


ESCAPED = tuple(_render(c) for c in range(256))


def escape_length(c):
    if not 0 <= c < 256:
        raise ValueError("not a byte value: %r" % (c,))
    return ESCAPED_LEN[c]


def escape_byte(c):
    if not 0 <= c < 256:
        raise ValueError("not a byte value: %r" % (c,))
    return ESCAPED[c]


def write_escaped(data, out, after_nul=False):
    """Writes the literal form of ``data`` to ``out``.

    ``after_nul`` says whether the previous chunk ended in a NUL byte. A short
    ``\\0`` followed by an octal digit would be read back as a single octal
    escape, so the literal is split with ``""`` there. Returns the state to pass
    in with the next chunk.
    """
    output = []
    for c in data:
        if after_nul and c in OCTAL_DIGITS:
            output.append('""')
        output.append(ESCAPED[c])
        after_nul = c == 0
    out.write("".join(output))
    return after_nul


def escape_name(name):
    return "".join(ESCAPED[c] for c in os.fsencode(name))


def check_identifiers(inputs):
    """Returns a list of error messages for inputs whose constants would clash."""
    seen = {TOC_ARRAY: None}
    errors = []
    for path in inputs:
        ident = data_identifier(path)
        if ident in seen:
            if seen[ident] is None:
                errors.append("%s: identifier %s is reserved" % (path, ident))
            else:
                errors.append("%s: identifier %s already used by %s" % (path, ident, seen[ident]))
        else:
            seen[ident] = path
    return errors


def write_header(out, package, toc_ident, namespace):
    guard = header_guard(package, toc_ident)
    out.write(HEADER_TEMPLATE % {"toc_guard": FILE_TOC_GUARD, "guard": guard})
    if namespace:
        out.write(HEADER_NAMESPACE_BEGIN % namespace)
    out.write(HEADER_DECLARATIONS % {"toc": toc_ident})
    if namespace:
        out.write(HEADER_NAMESPACE_END % namespace)
    out.write(HEADER_FOOTER % guard)


def create_file_data(ident, in_file, out):
    out.write(DATA_BEGIN % ident)
    size = 0
    after_nul = False
    while True:
        chunk = in_file.read(READ_SIZE)
        if not chunk:
            break
        size += len(chunk)
        after_nul = write_escaped(chunk, out, after_nul)
    out.write(DATA_END % size)
    return size


def create_file_toc(toc_entries, toc_ident, out):
    out.write(TOC_BEGIN)
    for base, ident in toc_entries:
        out.write(TOC_ENTRY % (escape_name(base), ident, ident))
    out.write(TOC_END % {"toc": toc_ident})


def write_source(out, package, name, toc_ident, namespace, inputs):
    include = package + "/" + name if package else name
    out.write(SOURCE_TEMPLATE % include)
    if namespace:
        out.write(SOURCE_NAMESPACE_BEGIN % namespace)

    toc_entries = []
    for file_name in inputs:
        ident = data_identifier(file_name)
        with open(file_name, "rb") as f:
            create_file_data(ident, f, out)
        toc_entries.append((os.path.basename(file_name), ident))

    create_file_toc(toc_entries, toc_ident, out)
    if namespace:
        out.write(SOURCE_NAMESPACE_END % namespace)
    return toc_entries


def open_output(file_name):
    # Arguments that are not valid UTF-8 are written back as their original bytes.
    return open(file_name, "w", encoding="utf-8", errors="surrogateescape", newline="\n")


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description="Embedded file table generator")
    parser.add_argument("package", metavar="PACKAGE", help="Package path, used for the include path and guard")
    parser.add_argument("name", metavar="NAME", help="Table name, hyphens become underscores")
    parser.add_argument("namespace", metavar="NAMESPACE", help="Enclosing namespace, empty for none")
    parser.add_argument("output_h", metavar="OUTPUT_H", help="Generated header")
    parser.add_argument("output_cc", metavar="OUTPUT_CC", help="Generated source")
    parser.add_argument("inputs", metavar="INPUT", nargs="+", help="Files to embed, in table order")
    return parser.parse_args(argv)


def fail(prog, file_name, error):
    sys.exit("%s: %s: %s" % (prog, file_name, error.strerror or error))


def main(argv=None):
    args = parse_arguments(argv)
    prog = os.path.basename(sys.argv[0])

    errors = check_identifiers(args.inputs)
    if errors:
        sys.exit("\n".join("%s: %s" % (prog, e) for e in errors))

    toc_ident = toc_identifier(args.name)

    try:
        with open_output(args.output_h) as out_h:
            write_header(out_h, args.package, toc_ident, args.namespace)
    except OSError as e:
        fail(prog, args.output_h, e)

    try:
        with open_output(args.output_cc) as out_cc:
            write_source(out_cc, args.package, args.name, toc_ident, args.namespace, args.inputs)
    except OSError as e:
        fail(prog, e.filename or args.output_cc, e)


if __name__ == '__main__':
    main()
