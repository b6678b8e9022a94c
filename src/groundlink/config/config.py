import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from validate import Validator

from groundlink.telemetry.model import DEFAULT_MAX_LISTENERS

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'

# the directory holding the configuration files shipped with the package
config_directory = os.path.dirname(__file__)

network_config_name = 'network'


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory.
    """
    config_file = os.path.join(directory or config_directory, name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True, **kwargs):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, file_error=must_exist, **kwargs) \
            if must_exist or os.path.exists(file) else ConfigObj(**kwargs)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None, **kwargs) -> ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The ConfigObj for the configuration file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    return load_config_file_base(file, False, **kwargs)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def user_config_file(name):
    return os.path.expanduser('~/' + name + config_extension)


def load_config(name, directory=None):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are loaded in this order:
        - the default specialization
        - the platform specialization
        - the user override
        - the base configuration
        The configurations are flattened into a single configuration, and then validated
        against the "schema" specialization, which also supplies defaults for missing values.
    :directory: the location of the configuration files
    :return: the validated ConfigObj
    """
    local_config = config_flavor_file(name, directory)
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(user_config_file(name), must_exist=False)
    config = ConfigObj()
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    config.merge(local_config)

    config.configspec = config_flavor_file(name, directory, 'schema', _inspec=True, list_values=False)
    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        failed = ["/".join(sections + [key]) for sections, key, _ in flatten_errors(config, result)
                  if key is not None]
        raise ConfigObjError("the config file %s failed validation %s" % (name, failed))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:        The root configuration
    :param path:        An iterable that lists the names of the sections to resolve
    :return: The configuration object identified by the path, or None
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return
    return conf


def apply_conf(conf: Section, target):
    """
    Applies the attributes contained in a configuration object to a target object.
    It does this by iterating over the items in the configuration and setting any attributes with the same name.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)
    return target


class LinkConfig:
    """
    The settings used by the data relay link. Attributes are named after the keys in the
    network configuration file.
    """

    def __init__(self, **kwargs):
        self.datarelay_legacy_mode = False      # connect directly to the legacy host/port
        self.datarelay_legacy_host = '127.0.0.1'
        self.datarelay_legacy_port = 1234
        self.datarelay_port = 1234              # UDP port the data relay listens on for discovery
        self.datarelay_timeout = 5000           # idle timeout on the data connection, in milliseconds
        self.telemetrydata_max_listeners = DEFAULT_MAX_LISTENERS
        apply_conf(kwargs, self)

    def __repr__(self):
        return "LinkConfig(%s)" % ", ".join("%s=%r" % item for item in sorted(self.__dict__.items()))


def load_link_config(directory=None, name=network_config_name, section=None) -> LinkConfig:
    """
    Loads the network configuration and applies it to a new LinkConfig.
    :param directory: the directory containing the configuration files. Defaults to the
        files shipped in this package.
    :param section: an optional '.' separated path to the section holding the link settings.
    """
    conf = load_config(name, directory)
    if section:
        conf = fetch_conf_path(conf, section.split('.'))
    target = LinkConfig()
    if conf:
        apply_conf(conf, target)
    logger.debug("loaded link configuration %s" % target)
    return target
