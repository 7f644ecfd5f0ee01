# TrackFlow core: entities, errors and pure services shared by components.
