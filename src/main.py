from automation.automation_builder import AutomationBuilder
from shared.logger import get_automation_log_path
# =============================================================================
# MAIN
# =============================================================================

PLOT_EXTENSIONS = ('.png', '.pdf')


def main():
    import sys

    # Verifica argomenti
    if len(sys.argv) < 2:
        print("Uso: python main.py <automation.yml> [output.png|output.pdf]")
        sys.exit(1)

    yaml_file = sys.argv[1]
    output_file = sys.argv[2] if len(sys.argv) > 2 else None

    if output_file is not None and not output_file.lower().endswith(PLOT_EXTENSIONS):
        print(f"✗ Errore: formato di output non supportato '{output_file}' (usa .png o .pdf)")
        sys.exit(1)

    try:
        print(f"Caricamento {yaml_file}...")
        automation = AutomationBuilder.load_yaml(yaml_file)

        print(f"  segmenti: {automation.segment_count}")
        print(f"  length:   {automation.length:.6g}")
        if automation.segment_count:
            print(f"  ymin:     {automation.ymin():.6g}")
            print(f"  ymax:     {automation.ymax():.6g}")

        if output_file is not None:
            # Import ritardato: matplotlib serve solo per il rendering
            from rendering.automation_visualizer import AutomationVisualizer

            print(f"Rendering {output_file}...")
            visualizer = AutomationVisualizer(automation)
            if output_file.lower().endswith('.pdf'):
                visualizer.export_pdf(output_file)
            else:
                visualizer.export_png(output_file)

        log_path = get_automation_log_path()
        if log_path:
            print(f"Log: {log_path}")

        print("\n✓ Completato!")

    except FileNotFoundError:
        print(f"✗ Errore: file '{yaml_file}' non trovato")
        sys.exit(1)
    except Exception as e:
        print(f"✗ Errore: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
