import collections
import os

import yaml

import portier.constants as const
from portier.engine import RuleEngine
from portier.exceptions import InvalidConfigurationFormatError, NotFoundException
from portier.pipeline import DecisionPipeline
from portier.reliability import ReliabilityWrapper
from portier.rules.interface import MUTATOR, VALIDATOR
from portier.rules.rule import Rule
from portier.util import RES_DIR, feature_flag_on, validate_schema

CHAINS = (("mutators", MUTATOR), ("validators", VALIDATOR))


class Config:
    """
    Config object that holds the registered rule chains and the settings of
    the admission pipeline.
    """

    __PATH = "/app/portier-config/config.yaml"
    __SCHEMA_PATH = os.path.join(RES_DIR, "config_schema.json")
    mutators: tuple = ()
    validators: tuple = ()
    home_namespace: str = const.DEFAULT_HOME_NAMESPACE
    detection_mode: bool = False

    def __init__(self, path: str = None):
        """
        Create a Config object. Read the config file, validate its contents
        and create the rules of both chains, in the order they are listed.

        Raise `NotFoundException` if the configuration file is empty.

        Raise `InvalidConfigurationFormatError` if the configuration file has
        an invalid format.
        """
        path = path or os.environ.get(const.CONFIG_PATH) or self.__PATH
        with open(path, "r", encoding="utf-8") as configfile:
            config = yaml.safe_load(configfile)

        if not config:
            msg = "Error loading portier config file {path}."
            raise NotFoundException(message=msg, path=path)

        self.__validate(config)

        self.home_namespace = (
            config.get("home_namespace")
            or os.environ.get(const.HOME_NAMESPACE)
            or const.DEFAULT_HOME_NAMESPACE
        )
        self.detection_mode = config.get("detection_mode", False) or feature_flag_on(
            const.DETECTION_MODE
        )
        self.mutators = self.__load_chain(config, "mutators", MUTATOR)
        self.validators = self.__load_chain(config, "validators", VALIDATOR)

    def __validate(self, config: dict):
        validate_schema(
            config,
            self.__SCHEMA_PATH,
            "Portier configuration",
            InvalidConfigurationFormatError,
        )
        for chain, _ in CHAINS:
            names = [rule["name"] for rule in config.get(chain) or []]
            duplicates = sorted(
                name for name, count in collections.Counter(names).items() if count > 1
            )
            if duplicates:
                msg = "Rule names must be unique, {chain} has duplicates: {names}."
                raise InvalidConfigurationFormatError(
                    message=msg, chain=chain, names=", ".join(duplicates)
                )

    @staticmethod
    def __load_chain(config: dict, chain: str, kind: str) -> tuple:
        rules = []
        for descriptor in config.get(chain) or []:
            arguments = dict(descriptor.get("with") or {})
            arguments.update({k: v for k, v in descriptor.items() if k != "with"})
            try:
                rule = Rule(**arguments)
            except TypeError as err:
                msg = "Rule {rule_name} has invalid arguments: {error}."
                raise InvalidConfigurationFormatError(
                    message=msg, rule_name=descriptor["name"], error=str(err)
                ) from err
            if rule.kind != kind:
                msg = "Rule {rule_name} of type {rule_type} can't be one of the {chain}."
                raise InvalidConfigurationFormatError(
                    message=msg,
                    rule_name=descriptor["name"],
                    rule_type=descriptor["type"],
                    chain=chain,
                )
            rules.append(rule)
        return tuple(rules)

    def build_pipeline(self) -> DecisionPipeline:
        engine = RuleEngine(
            self.mutators,
            self.validators,
            ReliabilityWrapper(self.home_namespace),
        )
        return DecisionPipeline(engine, detection_mode=self.detection_mode)
