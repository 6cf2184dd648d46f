# Message catalog and per-request localizer

from typing import Any

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "welcome": "Welcome to the Event Locator API",
        "notFound": "Resource not found",
        "serverError": "Something went wrong, please try again later",
        "validationError": "Validation failed",
        "unauthorized": "Authentication required",
        "forbidden": "You are not allowed to perform this action",
        "alreadyExists": "Resource already exists",
        "referenceError": "A referenced resource does not exist",
        "invalidCredentials": "Invalid username/email or password",
        "usernameExists": "Username is already taken",
        "emailExists": "Email is already registered",
        "incorrectPassword": "Current password is incorrect",
        "userRegistered": "User registered successfully",
        "loginSuccessful": "Login successful",
        "passwordChanged": "Password changed successfully",
        "profileUpdated": "Profile updated successfully",
        "categoriesUpdated": "Preferred categories updated successfully",
        "categoryCreated": "Category saved successfully",
        "categoryUpdated": "Category renamed successfully",
        "categoryDeleted": "Category deleted successfully",
        "accountDeleted": "Account deleted successfully",
        "eventCreated": "Event created successfully",
        "eventUpdated": "Event updated successfully",
        "eventDeleted": "Event deleted successfully",
        "eventFavorited": "Event added to favorites",
        "eventUnfavorited": "Event removed from favorites",
        "reviewAdded": "Review saved successfully",
        "invalidCategories": "Categories must be valid integers: {values}",
        "endBeforeStart": "End must be after start",
        "unknownCategories": "Unknown category ids: {values}",
    },
    "fr": {
        "welcome": "Bienvenue sur l'API Event Locator",
        "notFound": "Ressource introuvable",
        "serverError": "Une erreur est survenue, veuillez réessayer plus tard",
        "validationError": "La validation a échoué",
        "unauthorized": "Authentification requise",
        "forbidden": "Vous n'êtes pas autorisé à effectuer cette action",
        "alreadyExists": "La ressource existe déjà",
        "referenceError": "Une ressource référencée n'existe pas",
        "invalidCredentials": "Nom d'utilisateur/e-mail ou mot de passe invalide",
        "usernameExists": "Ce nom d'utilisateur est déjà pris",
        "emailExists": "Cet e-mail est déjà enregistré",
        "incorrectPassword": "Le mot de passe actuel est incorrect",
        "userRegistered": "Utilisateur inscrit avec succès",
        "loginSuccessful": "Connexion réussie",
        "passwordChanged": "Mot de passe modifié avec succès",
        "profileUpdated": "Profil mis à jour avec succès",
        "categoriesUpdated": "Catégories préférées mises à jour avec succès",
        "categoryCreated": "Catégorie enregistrée avec succès",
        "categoryUpdated": "Catégorie renommée avec succès",
        "categoryDeleted": "Catégorie supprimée avec succès",
        "accountDeleted": "Compte supprimé avec succès",
        "eventCreated": "Événement créé avec succès",
        "eventUpdated": "Événement mis à jour avec succès",
        "eventDeleted": "Événement supprimé avec succès",
        "eventFavorited": "Événement ajouté aux favoris",
        "eventUnfavorited": "Événement retiré des favoris",
        "reviewAdded": "Avis enregistré avec succès",
        "invalidCategories": "Les catégories doivent être des entiers valides : {values}",
        "endBeforeStart": "La fin doit être postérieure au début",
        "unknownCategories": "Identifiants de catégorie inconnus : {values}",
    },
}


class Localizer:
    """Translates catalog keys into one language, falling back to the default"""

    def __init__(self, language: str, default_language: str = "en"):
        self.language = language if language in MESSAGES else default_language
        self.default_language = default_language

    def localize(self, key: str, **params: Any) -> str:
        template = MESSAGES.get(self.language, {}).get(key)
        if template is None:
            template = MESSAGES.get(self.default_language, {}).get(key, key)
        if params:
            try:
                return template.format(**params)
            except (KeyError, IndexError):
                return template
        return template

    __call__ = localize


def parse_accept_language(header: str | None) -> list[str]:
    """Language tags from an Accept-Language header, best first"""
    if not header:
        return []

    weighted = []
    for position, part in enumerate(header.split(",")):
        pieces = part.strip().split(";")
        tag = pieces[0].strip().lower()
        if not tag or tag == "*":
            continue
        quality = 1.0
        for param in pieces[1:]:
            name, _, value = param.strip().partition("=")
            if name == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        weighted.append((-quality, position, tag.split("-")[0]))

    return [tag for _, _, tag in sorted(weighted)]


def resolve_language(
        query_lang: str | None,
        accept_language: str | None,
        supported: list[str],
        default: str
) -> str:
    """?lang= wins, then Accept-Language, then the default"""
    if query_lang and query_lang.lower() in supported:
        return query_lang.lower()
    for tag in parse_accept_language(accept_language):
        if tag in supported:
            return tag
    return default
