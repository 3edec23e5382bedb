#!/usr/bin/env python3
'''
Dump the fields of a resource.

The template can be the type of one of the built-in templates (like 'STR#'),
a JSON file with the descriptors or a file containing a TMPL resource.
'''
import sys
import os
import logging

from resstruct.dump import format_record
from resstruct.exceptions import ResstructException
from resstruct.loader import load_json
from resstruct.macos import TEMPLATES
from resstruct.record import decode
from resstruct.tmpl import load_tmpl

if 'DEBUG' in os.environ:
    logging.basicConfig()
    logger = logging.getLogger('resstruct')
    logger.setLevel(logging.DEBUG)


def usage(progname):
    print('usage: %s <resource type|template.json|TMPL file> <resource data>' % progname)
    sys.exit(1)


def get_template(argument):
    if argument in TEMPLATES:
        return TEMPLATES[argument]

    if argument.endswith('.json'):
        return load_json(argument)

    return load_tmpl(argument)


if __name__ == '__main__':
    if len(sys.argv) < 3:
        usage(sys.argv[0])

    template = get_template(sys.argv[1])

    with open(sys.argv[2], 'rb') as f:
        data = f.read()

    try:
        record = decode(template, data)
    except ResstructException as e:
        print(f'cannot decode: {e}')
        sys.exit(2)

    print(format_record(record))
