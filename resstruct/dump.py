'''
Textual representation of a record, one line per field with its position.
'''
from .record import Record


def format_value(node) -> str:
    if not node.is_leaf:
        return ''

    value = node.value
    if isinstance(value, bytes):
        value = value.hex()
    else:
        value = repr(value)

    label = node.label
    if label:
        value = '%s (%s)' % (value, ', '.join(label) if isinstance(label, list) else label)

    return value


def format_record(record: Record):
    lines = []
    for node in record.walk():
        if node is record.root:
            continue

        depth = len(node.chain) - 1
        lines.append('0x%04x %5d  %s%-*s %-12s %s' % (
            node.offset,
            node.size,
            '  ' * depth,
            max(24 - 2 * depth, 1),
            node.name,
            node.tag.value,
            format_value(node),
        ))

    if record.trailing:
        lines.append('0x%04x %5d  %-24s %-12s %s' % (
            record.root.size,
            len(record.trailing),
            '<trailing>',
            '',
            record.trailing.hex(),
        ))

    return '\n'.join(line.rstrip() for line in lines)
