# automation_builder.py
"""
Builder per costruire Automation da dati grezzi (dict / liste / YAML).

Design Pattern: Builder
- Separa la logica di parsing da Automation
- Delega la creazione dei segmenti a SegmentFactory

FORMATI SEGMENTO:
- Dict:     {'type': 'linear', 'length': 4, 'y1': 60, 'y2': 40}
- Compatto: [type, length, *valori]
    ['constant', 4, 60]                 -> c
    ['linear', 4, 60, 40]               -> y1, y2
    ['exponential', 2, 60, 80, 70]      -> y1, y2, yc
    ['quadratic', 2, 0, 0, 1]           -> y1, y2, yc

Le posizioni x sono sempre ricalcolate dal relayout: conta solo la
lunghezza (o x2 - x1 se la lunghezza non è data).

FILE YAML:
    automation:
      - [constant, 4, 60]
      - {type: linear, length: 4, y1: 60, y2: 40}
    logging:
      file_enabled: true
"""

import os
from typing import Any, Dict, List, Union

import yaml

from automation.automation import Automation
from automation.automation_errors import AutomationError, InvalidParameter
from automation.automation_segment import (
    AutomationSegment,
    ConstantAutomationSegment,
    ExponentialAutomationSegment,
    QuadraticAutomationSegment,
)
from automation.segment_factory import SegmentFactory
from shared.logger import configure_automation_logger, log_automation_built
from shared.utils import get_nested


class AutomationBuilder:
    """
    Builder per creare Automation da formati multipli.

    Public API:
    - parse(raw) -> Automation
    - load_yaml(path) -> Automation
    - to_spec(automation) -> dict
    """

    # Nomi dei valori posizionali nel formato compatto, per tipo
    _COMPACT_FIELDS = {
        'constant': ('c',),
        'linear': ('y1', 'y2'),
        'exponential': ('y1', 'y2', 'yc'),
        'quadratic': ('y1', 'y2', 'yc'),
    }

    _LOGGING_KEYS = (
        'enabled', 'console_enabled', 'file_enabled',
        'log_dir', 'log_name', 'log_fallbacks',
    )

    @classmethod
    def parse(cls, raw: Union[List, Dict[str, Any]], source: str = '<data>') -> Automation:
        """
        Parsa una lista di specifiche segmento in una Automation.

        Args:
            raw: lista di segmenti (dict o compatti) oppure
                 dict con chiave 'segments'
            source: origine dei dati, usata solo nei log

        Returns:
            Automation con i segmenti nell'ordine dato

        Raises:
            InvalidParameter: formato non valido (con indice del segmento)
            InvalidBounds: lunghezza non valida per il tipo

        Examples:
            >>> a = AutomationBuilder.parse([['constant', 4, 60], ['linear', 4, 60, 40]])
            >>> a.value_at(6)
            50.0
        """
        if isinstance(raw, dict):
            if 'segments' not in raw:
                raise InvalidParameter("Automation dict must contain a 'segments' list")
            raw = raw['segments']

        if not isinstance(raw, (list, tuple)):
            raise InvalidParameter(
                f"Formato automation non valido: atteso lista di segmenti, "
                f"ricevuto {type(raw).__name__}"
            )

        segments = [cls._parse_segment(index, item) for index, item in enumerate(raw)]
        automation = Automation(segments)

        log_automation_built(source, automation)
        return automation

    @classmethod
    def _parse_segment(cls, index: int, item: Any) -> AutomationSegment:
        try:
            if isinstance(item, AutomationSegment):
                return item
            if isinstance(item, dict):
                return cls._parse_dict(item)
            if isinstance(item, (list, tuple)):
                return cls._parse_compact(item)
            raise InvalidParameter(
                f"atteso dict o [type, length, *values], ricevuto {type(item).__name__}"
            )
        except AutomationError as e:
            # Stesso tipo di errore, con il contesto del segmento
            raise type(e)(f"Segment #{index} {item!r}: {e}") from e

    @classmethod
    def _parse_dict(cls, item: dict) -> AutomationSegment:
        params = dict(item)
        seg_type = params.pop('type', None)
        if seg_type is None:
            raise InvalidParameter("missing 'type'")
        return SegmentFactory.create(seg_type, **params)

    @classmethod
    def _parse_compact(cls, item) -> AutomationSegment:
        if len(item) < 2:
            raise InvalidParameter("compact format needs at least [type, length]")

        seg_type, length, *values = item
        segment_class = SegmentFactory.resolve(seg_type)
        fields = cls._COMPACT_FIELDS[SegmentFactory.type_name(segment_class)]

        if len(values) > len(fields):
            raise InvalidParameter(
                f"too many values for {segment_class.__name__}: "
                f"expected at most {len(fields)} ({', '.join(fields)})"
            )

        params = dict(zip(fields, values))
        params['length'] = length
        return SegmentFactory.create(segment_class, **params)

    # =========================================================================
    # YAML
    # =========================================================================

    @classmethod
    def load_yaml(cls, yaml_path: str) -> Automation:
        """
        Carica una Automation da file YAML.

        Il documento deve avere una sezione 'automation' (lista di segmenti);
        la sezione opzionale 'logging' configura il logger prima del parsing.

        Raises:
            FileNotFoundError: file inesistente
            InvalidParameter: documento non valido
        """
        with open(yaml_path, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise InvalidParameter(f"Invalid YAML in {yaml_path}: {e}") from e

        if not isinstance(data, dict) or 'automation' not in data:
            raise InvalidParameter(f"{yaml_path}: missing 'automation' section")

        logging_config = get_nested(data, 'logging', None)
        if logging_config is not None:
            cls._configure_logging(logging_config, yaml_path)

        return cls.parse(data['automation'], source=yaml_path)

    @classmethod
    def _configure_logging(cls, logging_config: dict, yaml_path: str):
        if not isinstance(logging_config, dict):
            raise InvalidParameter("'logging' section must be a mapping")

        unknown = set(logging_config) - set(cls._LOGGING_KEYS)
        if unknown:
            raise InvalidParameter(
                f"Unknown logging options: {sorted(unknown)}. "
                f"Valid options: {list(cls._LOGGING_KEYS)}"
            )

        options = dict(logging_config)
        # Nome file di log di default = nome del YAML
        options.setdefault('log_name', os.path.splitext(os.path.basename(yaml_path))[0])
        configure_automation_logger(**options)

    # =========================================================================
    # SERIALIZZAZIONE
    # =========================================================================

    @classmethod
    def to_spec(cls, automation: Automation) -> Dict[str, list]:
        """
        Serializza una Automation nel formato dict accettato da parse().

        Returns:
            {'segments': [{'type': ..., 'length': ..., ...}, ...]}
        """
        specs = []
        for seg in automation:
            spec = {'type': SegmentFactory.type_name(seg), 'length': seg.length}
            if isinstance(seg, ConstantAutomationSegment):
                spec['c'] = seg.c
            else:
                spec['y1'] = seg.y1
                spec['y2'] = seg.y2
                if isinstance(seg, (ExponentialAutomationSegment, QuadraticAutomationSegment)):
                    spec['yc'] = seg.yc
            specs.append(spec)
        return {'segments': specs}
