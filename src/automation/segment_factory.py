# segment_factory.py
"""
Factory per la creazione di AutomationSegment.

Design Pattern: Factory Method
- Centralizza la creazione dei segmenti da tipo stringa
- Elimina if/elif dispersi nel builder e nel CLI
- Facilita l'estensione con nuove forme
"""

from typing import Type, Union

from automation.automation_errors import InvalidParameter
from automation.automation_segment import (
    AutomationSegment,
    ConstantAutomationSegment,
    ExponentialAutomationSegment,
    LinearAutomationSegment,
    QuadraticAutomationSegment,
)


class SegmentFactory:
    """
    Factory per creare AutomationSegment da tipo stringa.

    Supporta i tipi:
    - 'constant' (alias 'const'): ConstantAutomationSegment
    - 'linear': LinearAutomationSegment
    - 'exponential' (alias 'exp'): ExponentialAutomationSegment
    - 'quadratic' (alias 'quad'): QuadraticAutomationSegment

    Case-insensitive per robustezza.
    """

    # Mappa tipo stringa → classe segmento
    _SEGMENT_MAP = {
        'constant': ConstantAutomationSegment,
        'linear': LinearAutomationSegment,
        'exponential': ExponentialAutomationSegment,
        'quadratic': QuadraticAutomationSegment,
    }

    _ALIASES = {
        'const': 'constant',
        'exp': 'exponential',
        'quad': 'quadratic',
    }

    @classmethod
    def create(
        cls,
        seg_type: Union[str, Type[AutomationSegment]],
        **params
    ) -> AutomationSegment:
        """
        Crea un AutomationSegment da tipo stringa o classe.

        Args:
            seg_type: 'constant', 'linear', 'exponential', 'quadratic'
                      (o alias) oppure una sottoclasse di AutomationSegment
            **params: parametri del costruttore (x1, x2, length, y1, y2, yc, c)

        Returns:
            AutomationSegment: segmento costruito e validato

        Raises:
            InvalidParameter: tipo non riconosciuto o parametro inatteso

        Examples:
            >>> seg = SegmentFactory.create('linear', length=4, y1=60, y2=40)
            >>> seg.value_at(2)
            50.0

            >>> seg = SegmentFactory.create('EXP', length=2, y1=60, y2=80, yc=70)
            >>> isinstance(seg, ExponentialAutomationSegment)
            True
        """
        segment_class = cls.resolve(seg_type)

        try:
            return segment_class(**params)
        except TypeError as e:
            raise InvalidParameter(
                f"Invalid parameters for {segment_class.__name__}: {e}"
            ) from e

    @classmethod
    def resolve(cls, seg_type: Union[str, Type[AutomationSegment]]) -> Type[AutomationSegment]:
        """Ritorna la classe segmento per seg_type."""
        if isinstance(seg_type, type) and issubclass(seg_type, AutomationSegment):
            return seg_type

        if not isinstance(seg_type, str):
            raise InvalidParameter(
                f"seg_type deve essere str o sottoclasse di AutomationSegment, "
                f"ricevuto: {type(seg_type).__name__}"
            )

        normalized_type = seg_type.strip().lower()
        normalized_type = cls._ALIASES.get(normalized_type, normalized_type)

        segment_class = cls._SEGMENT_MAP.get(normalized_type)

        if segment_class is None:
            raise InvalidParameter(
                f"Tipo segmento non riconosciuto: '{seg_type}'. "
                f"Tipi validi: {cls.get_supported_types()}"
            )

        return segment_class

    @classmethod
    def type_name(cls, seg: Union[AutomationSegment, Type[AutomationSegment]]) -> str:
        """Nome canonico del tipo di un segmento o di una classe (inverso di create)."""
        seg_class = seg if isinstance(seg, type) else type(seg)
        for name, segment_class in cls._SEGMENT_MAP.items():
            if seg_class is segment_class:
                return name
        raise InvalidParameter(f"Unknown segment class: {seg_class.__name__}")

    @classmethod
    def get_supported_types(cls) -> list:
        """
        Ritorna lista dei tipi supportati.

        Returns:
            List[str]: ('constant', 'linear', 'exponential', 'quadratic')
        """
        return list(cls._SEGMENT_MAP.keys())
