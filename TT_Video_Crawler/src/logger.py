import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s;%(levelname)-5s:%(name)-10s: %(message)s',
    datefmt='%m-%d/%H:%M',
    force=True  # Important for Jupyter!
)

logger = logging.getLogger('TTVC')

# Playwright's own driver logs are noisy at INFO
logging.getLogger('playwright').setLevel(logging.WARNING)
