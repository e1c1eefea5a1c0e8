""" Payload object numbers, in dotted form, for every payload object
    exchanged with the archiver.
"""

KEY_VALUE_QUERY = '2.0.8.1'

METADATA_RESPONSE = '2.0.8.2'
TIMESERIES_RESPONSE = '2.0.8.4'
CHANGED_RANGES_RESPONSE = '2.0.8.8'
QUERY_ERROR = '2.0.8.9'


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
