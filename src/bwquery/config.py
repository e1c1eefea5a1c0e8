""" Runtime configuration for bwquery. All settings come from the
    environment; the values are read once, on first use, and cached.
"""

import os
import threading


defaults = dict()
defaults['transport'] = 'zmq'
defaults['publish_address'] = 'tcp://localhost:28590'
defaults['subscribe_address'] = 'tcp://localhost:28591'
defaults['archiver'] = 'gabe.ns'
defaults['timeout'] = 30.0

variables = dict()
variables['transport'] = 'BWQUERY_TRANSPORT'
variables['publish_address'] = 'BWQUERY_PUBLISH'
variables['subscribe_address'] = 'BWQUERY_SUBSCRIBE'
variables['archiver'] = 'BWQUERY_ARCHIVER'
variables['timeout'] = 'BWQUERY_TIMEOUT'


_cache = None
_cache_lock = threading.Lock()


class Configuration:
    """ A convenience class to represent bwquery configuration. Any keyword
        argument overrides both the default and the environment; the
        *environ* argument defaults to :data:`os.environ`.

        :ivar transport: Name of the transport backend, 'zmq' or 'memory'.
        :ivar publish_address: ZeroMQ endpoint that publishes are sent to.
        :ivar subscribe_address: ZeroMQ endpoint subscriptions connect to.
        :ivar archiver: Base URI of the archiver service.
        :ivar timeout: Seconds to wait for the response to a one-shot query;
            None waits indefinitely.
    """

    def __init__(self, environ=None, **overrides):

        if environ is None:
            environ = os.environ

        for name,default in defaults.items():
            try:
                value = overrides[name]
            except KeyError:
                value = environ.get(variables[name], default)

            setattr(self, name, value)

        unknown = set(overrides) - set(defaults)
        if unknown:
            raise TypeError('unknown configuration setting(s): ' + ', '.join(sorted(unknown)))

        self.transport = str(self.transport).strip().lower()
        self.timeout = _timeout(self.timeout)


    def __repr__(self):
        fields = ', '.join('%s=%r' % (name, getattr(self, name)) for name in defaults)
        return 'Configuration(' + fields + ')'


# end of class Configuration



def _timeout(value):
    """ Normalize a timeout setting. Zero, a negative number, or the
        string 'none' all mean wait indefinitely.
    """

    if value is None:
        return None

    if isinstance(value, str) and value.strip().lower() in ('', 'none'):
        return None

    try:
        value = float(value)
    except ValueError:
        raise ValueError('invalid timeout: ' + repr(value)) from None

    if value <= 0:
        return None

    return value



def get():
    """ Return the cached :class:`Configuration` built from the environment,
        creating it on the first call.
    """

    global _cache

    with _cache_lock:
        if _cache is None:
            _cache = Configuration()
        return _cache



def _clear():
    """ Discard the cached configuration, so that the next :func:`get` will
        re-read the environment.
    """

    global _cache

    with _cache_lock:
        _cache = None


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
