"""
# Resstruct: templates for binary resources.

A resource is a blob of bytes whose layout is known only via a template: an
ordered list of typed fields (integers, strings, booleans, nested records,
lists...). Given a template this package turns the bytes into a tree of
editable fields and the tree back into bytes.

Two basic main operations are defined for the template and its sub components:

 1. decode(): the more straightforward, i.e., reading the binary data
    and build a high-level representation of that.
    The cursor is shared among the fields, each one knows how many
    bytes it needs to read to finalize its representation

 2. encode(): turn the high-level representation into binary data.

to these we add one more

 3. relayout(): recompute the offset and size of each field after a
    modification, the size of a field is always derived from its value.

If we define a "field" as something with "direct representation" and without
subcomponents we can see that the relayouting doesn't impact on it.

Bytes the template doesn't describe are never lost: without modifications
encoding gives back the data that was decoded.

A node of the tree can be in one of the following states

 1. INIT
 2. DECODING
 3. RELAYOUTING
 4. ENCODING
 5. DONE

"""
