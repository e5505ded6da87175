DISCORD_INTERACTION_TYPE_COMPONENT = 3
DISCORD_INTERACTION_TYPE_MODAL_SUBMIT = 5
DISCORD_INTERACTION_CALLBACK_DEFERRED_UPDATE_MESSAGE = 6
