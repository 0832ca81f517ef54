# =============================================================================
# AUTOMATION VISUALIZER - Rendering grafico di una Automation
# =============================================================================

import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
import numpy as np

from automation.automation_errors import InvalidParameter
from shared.utils import select


class AutomationVisualizer:
    """
    Visualizzatore di una Automation.

    Genera una figura dove:
    - Pannello principale: valore (asse X: posizione, asse Y: valore)
    - Linee verticali tratteggiate: confini tra segmenti
    - Pannelli opzionali: derivata, integrale, time integral
      (quest'ultimo solo se definito, cioè ymin > 0)
    """

    def __init__(self, automation, config=None):
        """
        Args:
            automation: Automation da visualizzare
            config: dict di configurazione (opzionale, sovrascrive i default)
        """
        self.automation = automation

        default_config = {
            'resolution': 1000,              # punti campionati
            'tail': 0.1,                     # frazione di lunghezza oltre la fine
            'figsize': (10, 6),              # pollici
            'show_boundaries': True,
            'show_derivative': False,
            'show_integral': False,
            'show_time_integral': False,

            # Stile
            'colors': {
                'value': 'steelblue',
                'derivative': '#f4a261',
                'integral': '#2a9d8f',
                'time_integral': '#e76f51',
                'boundary': 'gray',
            },
            'title': None,
            'title_fontsize': 12,
            'label_fontsize': 8,
        }

        self.config = default_config
        if config:
            unknown = set(config) - set(default_config)
            if unknown:
                raise InvalidParameter(f"Unknown visualizer options: {sorted(unknown)}")
            colors = {**default_config['colors'], **config.get('colors', {})}
            self.config = {**default_config, **config, 'colors': colors}

        if self.config['resolution'] < 2:
            raise InvalidParameter("resolution must be >= 2")

    # =========================================================================
    # CAMPIONAMENTO
    # =========================================================================

    def sample_positions(self) -> np.ndarray:
        """Posizioni ordinate da 0 a length * (1 + tail)."""
        length = self.automation.length
        end = length * (1 + self.config['tail']) if length > 0 else 1.0
        return np.linspace(0.0, end, self.config['resolution'])

    def _panels(self):
        panels = [('value', 'values')]
        if self.config['show_derivative']:
            panels.append(('derivative', 'derivatives'))
        if self.config['show_integral']:
            panels.append(('integral', 'integrals'))
        if self.config['show_time_integral'] and len(self.automation) and self.automation.ymin() > 0:
            panels.append(('time_integral', 'time_integrals'))
        return panels

    # =========================================================================
    # RENDERING
    # =========================================================================

    def render(self):
        """
        Disegna la figura.

        Returns:
            matplotlib.figure.Figure
        """
        positions = self.sample_positions()
        panels = self._panels()

        fig, axes = plt.subplots(
            len(panels), 1,
            figsize=self.config['figsize'],
            sharex=True,
            squeeze=False
        )

        for ax, (name, method) in zip(axes[:, 0], panels):
            # Buffer ordinato: percorso veloce, valutato in place
            data = positions.copy()
            getattr(self.automation, method)(data, sorted=True)

            ax.plot(positions, data, color=self.config['colors'][name], linewidth=1.2)
            ax.set_ylabel(name.replace('_', ' '), fontsize=self.config['label_fontsize'])
            ax.grid(True, alpha=0.3)

            if self.config['show_boundaries']:
                self._draw_boundaries(ax)

        axes[-1, 0].set_xlabel('x', fontsize=self.config['label_fontsize'])

        title = select(self.config['title'], repr(self.automation))
        fig.suptitle(title, fontsize=self.config['title_fontsize'])
        fig.tight_layout()
        return fig

    def _draw_boundaries(self, ax):
        for seg in self.automation:
            ax.axvline(seg.x2, color=self.config['colors']['boundary'],
                       linestyle='--', linewidth=0.6, alpha=0.6)

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_png(self, output_path, dpi=150):
        fig = self.render()
        try:
            fig.savefig(output_path, dpi=dpi)
        finally:
            plt.close(fig)
        return output_path

    def export_pdf(self, output_path):
        fig = self.render()
        try:
            with PdfPages(output_path) as pdf:
                pdf.savefig(fig)
        finally:
            plt.close(fig)
        return output_path

    def show(self):
        fig = self.render()
        plt.show()
        return fig
