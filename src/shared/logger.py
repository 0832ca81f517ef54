# =============================================================================
# logger.py - Gestione logging per l'engine di automation
# =============================================================================
import logging
from datetime import datetime
import os

# =============================================================================
# CONFIGURAZIONE
# =============================================================================
AUTOMATION_LOG_CONFIG = {
    'enabled': True,                    # Master switch: False disabilita tutto
    'console_enabled': True,            # Stampa su terminale (solo WARNING)
    'file_enabled': False,              # Scrive su file
    'log_dir': './logs',                # Directory per i file di log
    'log_name': None,                   # None = auto-genera con timestamp
    'log_fallbacks': False,             # Logga i rami degeneri (exp -> linear, ...)
}

_automation_logger = None
_automation_logger_initialized = False


# =============================================================================
# FUNZIONI PUBBLICHE
# =============================================================================

def configure_automation_logger(
    enabled=True,
    console_enabled=True,
    file_enabled=False,
    log_dir='./logs',
    log_name=None,
    log_fallbacks=False
):
    """
    Configura il logger dell'engine di automation.
    Chiamare PRIMA di costruire o valutare le Automation da loggare.

    Args:
        enabled: Master switch - se False, nessun logging
        console_enabled: Se True, stampa warning su terminale
        file_enabled: Se True, scrive su file
        log_dir: Directory dove salvare i file di log
        log_name: Nome base del file (es. nome del YAML, senza estensione).
                  Il file sarà: automation_{log_name}.log
        log_fallbacks: Se True, logga quando una forma viene valutata
                       con la formula degenere (lineare / costante)
    """
    global _automation_logger, _automation_logger_initialized

    AUTOMATION_LOG_CONFIG['enabled'] = enabled
    AUTOMATION_LOG_CONFIG['console_enabled'] = console_enabled
    AUTOMATION_LOG_CONFIG['file_enabled'] = file_enabled
    AUTOMATION_LOG_CONFIG['log_dir'] = log_dir
    AUTOMATION_LOG_CONFIG['log_name'] = log_name
    AUTOMATION_LOG_CONFIG['log_fallbacks'] = log_fallbacks

    # Reset logger per ri-inizializzazione
    _close_handlers()
    _automation_logger = None
    _automation_logger_initialized = False


def get_automation_logger():
    """
    Ottiene il logger dell'engine (lazy initialization).
    Rispetta la configurazione in AUTOMATION_LOG_CONFIG.

    Returns:
        logging.Logger o None se disabilitato
    """
    global _automation_logger, _automation_logger_initialized

    # Se già inizializzato, ritorna (anche se None)
    if _automation_logger_initialized:
        return _automation_logger

    _automation_logger_initialized = True

    # Master switch
    if not AUTOMATION_LOG_CONFIG['enabled']:
        _automation_logger = None
        return None

    # Se né console né file sono abilitati, disabilita
    if not AUTOMATION_LOG_CONFIG['console_enabled'] and not AUTOMATION_LOG_CONFIG['file_enabled']:
        _automation_logger = None
        return None

    _automation_logger = logging.getLogger('automation')
    _automation_logger.setLevel(logging.INFO)
    _automation_logger.handlers = []  # Pulisci handler esistenti

    # === FILE HANDLER ===
    if AUTOMATION_LOG_CONFIG['file_enabled']:
        log_dir = AUTOMATION_LOG_CONFIG['log_dir']
        os.makedirs(log_dir, exist_ok=True)

        if AUTOMATION_LOG_CONFIG.get('log_name'):
            log_filename = f"automation_{AUTOMATION_LOG_CONFIG['log_name']}.log"
        else:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_filename = f'automation_{timestamp}.log'

        log_path = os.path.join(log_dir, log_filename)

        file_handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-7s | %(message)s',
            datefmt='%H:%M:%S'
        ))
        _automation_logger.addHandler(file_handler)

    # === CONSOLE HANDLER ===
    if AUTOMATION_LOG_CONFIG['console_enabled']:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('AUTOMATION: %(message)s'))
        _automation_logger.addHandler(console_handler)

    _automation_logger.propagate = False

    return _automation_logger


def get_automation_log_path():
    """
    Ritorna il percorso del file di log corrente (se esiste).

    Returns:
        str o None
    """
    if _automation_logger is None:
        return None

    for handler in _automation_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return handler.baseFilename
    return None


def log_fallback(segment_kind, reason, **values):
    """
    Logga la valutazione di una forma con la formula degenere.

    Args:
        segment_kind: nome della classe del segmento
        reason: descrizione del ramo (es. 'exponential as linear')
        values: parametri numerici rilevanti (slope, p, ...)
    """
    if not AUTOMATION_LOG_CONFIG['log_fallbacks']:
        return

    logger = get_automation_logger()
    if logger is None:
        return

    details = " ".join(f"{k}={v:.6g}" for k, v in values.items())
    logger.info(f"[FALLBACK] {segment_kind:<30} | {reason:<28} | {details}")


def log_time_integral_rejected(owner, ymin):
    """
    Logga un integrale temporale rifiutato (ymin <= 0).

    Args:
        owner: repr del segmento o dell'automation
        ymin: minimo trovato
    """
    logger = get_automation_logger()
    if logger is None:
        return

    logger.warning(
        f"[TIME-INTEGRAL] {owner} | ymin={ymin:>12.6f} <= 0, integral of 1/f undefined"
    )


def log_automation_built(source, automation):
    """
    Logga il riepilogo di una Automation costruita dal builder.

    Args:
        source: origine della definizione (path YAML o '<dict>')
        automation: Automation appena costruita
    """
    logger = get_automation_logger()
    if logger is None:
        return

    kinds = ", ".join(type(seg).__name__ for seg in automation)
    logger.info(
        f"[BUILD] {source} | segments={len(automation)} | "
        f"length={automation.length:.6g} | {kinds}"
    )


# =============================================================================
# HELPERS
# =============================================================================

def _close_handlers():
    if _automation_logger is None:
        return
    for handler in _automation_logger.handlers[:]:
        handler.close()
        _automation_logger.removeHandler(handler)
