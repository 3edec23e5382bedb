from enum import Flag


class Compliant(Flag):
    '''It indicates which degree of compliantness the data must reflect the template'''
    NONE     = 0
    ENUM     = 1 << 0
    TRAILING = 1 << 1
    INHERIT  = 1 << 2
