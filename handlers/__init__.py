"""
Pipeline handlers, loaded automatically by pipeline.load_handlers().

- start_handler: answers /start with a greeting (priority 100)
- video_download_handler: downloads the linked video (priority 50)

Toggle with {HANDLER_NAME}_ENABLED / {HANDLER_NAME}_PRIORITY.
"""
