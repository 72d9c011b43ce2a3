"""
Static Flutter project template used when the model cannot produce code.

Everything here is pure: the same request always yields byte-identical
files. No network, no randomness, no clock.
"""
import re
from typing import Dict, List

from appforge.schemas.generation import ProjectBundle

SCREENS = [
    # (file stem, class name, title, icon)
    ("home", "HomeScreen", "Home", "Icons.home_outlined"),
    ("details", "DetailsScreen", "Details", "Icons.list_alt_outlined"),
    ("profile", "ProfileScreen", "Profile", "Icons.person_outline"),
    ("settings", "SettingsScreen", "Settings", "Icons.settings_outlined"),
]

BACKEND_DEPENDENCIES = {
    "firebase": ["firebase_core: ^2.24.2", "firebase_auth: ^4.16.0", "cloud_firestore: ^4.14.0"],
    "supabase": ["supabase_flutter: ^2.3.0"],
    "nodejs": ["http: ^1.2.0"],
}

BACKEND_LABELS = {
    "firebase": "Firebase",
    "supabase": "Supabase",
    "nodejs": "Node.js (custom API)",
}


def package_name(app_name: str) -> str:
    """Dart package name: lowercase snake_case starting with a letter."""
    name = re.sub(r"[^a-z0-9]+", "_", app_name.lower()).strip("_")
    if not name or not name[0].isalpha():
        name = f"app_{name}" if name else "generated_app"
    return name


def class_prefix(app_name: str) -> str:
    """PascalCase identifier derived from the app name."""
    words = re.findall(r"[A-Za-z0-9]+", app_name)
    prefix = "".join(word[:1].upper() + word[1:] for word in words)
    if not prefix or not prefix[0].isalpha():
        prefix = f"App{prefix}"
    return prefix


def dart_string(text: str) -> str:
    """Escape text for a single-quoted Dart string literal."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("$", "\\$")
        .replace("\r", " ")
        .replace("\n", " ")
    )


def tagline(prompt: str, limit: int = 120) -> str:
    """First sentence of the prompt, clipped."""
    first = re.split(r"(?<=[.!?])\s", prompt.strip(), maxsplit=1)[0]
    first = " ".join(first.split())
    if len(first) > limit:
        first = first[: limit - 3].rstrip() + "..."
    return first


def _pubspec(app_name: str, backend: str) -> str:
    deps = "\n".join(f"  {dep}" for dep in BACKEND_DEPENDENCIES.get(backend, []))
    return f"""name: {package_name(app_name)}
description: {app_name} - generated Flutter application.
publish_to: 'none'
version: 1.0.0+1

environment:
  sdk: '>=3.0.0 <4.0.0'

dependencies:
  flutter:
    sdk: flutter
  cupertino_icons: ^1.0.6
{deps}

dev_dependencies:
  flutter_test:
    sdk: flutter
  flutter_lints: ^3.0.0

flutter:
  uses-material-design: true
"""


def _main_dart(app_name: str, backend: str) -> str:
    prefix = class_prefix(app_name)
    imports = [
        "import 'package:flutter/material.dart';",
    ]
    if backend == "firebase":
        imports.append("import 'package:firebase_core/firebase_core.dart';")
        imports.append("import 'firebase_options.dart';")
    elif backend == "supabase":
        imports.append("import 'package:supabase_flutter/supabase_flutter.dart';")
        imports.append("import 'supabase_config.dart';")
    imports.append("import 'theme/app_theme.dart';")
    imports.extend(f"import 'screens/{stem}_screen.dart';" for stem, _, _, _ in SCREENS)

    if backend == "firebase":
        init = (
            "  await Firebase.initializeApp(\n"
            "    options: DefaultFirebaseOptions.currentPlatform,\n"
            "  );\n"
        )
    elif backend == "supabase":
        init = "  await Supabase.initialize(url: supabaseUrl, anonKey: supabaseAnonKey);\n"
    else:
        init = ""

    screens = ",\n".join(f"    const {cls}()" for _, cls, _, _ in SCREENS)
    destinations = ",\n".join(
        f"          NavigationDestination(icon: Icon({icon}), label: '{title}')"
        for _, _, title, icon in SCREENS
    )
    return f"""{chr(10).join(imports)}

Future<void> main() async {{
  WidgetsFlutterBinding.ensureInitialized();
{init}  runApp(const {prefix}App());
}}

class {prefix}App extends StatelessWidget {{
  const {prefix}App({{super.key}});

  @override
  Widget build(BuildContext context) {{
    return MaterialApp(
      title: '{dart_string(app_name)}',
      debugShowCheckedModeBanner: false,
      theme: AppTheme.light,
      darkTheme: AppTheme.dark,
      home: const MainShell(),
    );
  }}
}}

class MainShell extends StatefulWidget {{
  const MainShell({{super.key}});

  @override
  State<MainShell> createState() => _MainShellState();
}}

class _MainShellState extends State<MainShell> {{
  int _index = 0;

  static const List<Widget> _screens = [
{screens},
  ];

  @override
  Widget build(BuildContext context) {{
    return Scaffold(
      body: _screens[_index],
      bottomNavigationBar: NavigationBar(
        selectedIndex: _index,
        onDestinationSelected: (value) => setState(() => _index = value),
        destinations: const [
{destinations},
        ],
      ),
    );
  }}
}}
"""


def _theme_dart() -> str:
    return """import 'package:flutter/material.dart';

class AppTheme {
  static const Color seed = Color(0xFF6366F1);

  static ThemeData get light => ThemeData(
        useMaterial3: true,
        colorScheme: ColorScheme.fromSeed(seedColor: seed),
      );

  static ThemeData get dark => ThemeData(
        useMaterial3: true,
        colorScheme: ColorScheme.fromSeed(
          seedColor: seed,
          brightness: Brightness.dark,
        ),
      );
}
"""


def _screen_dart(app_name: str, prompt: str, stem: str, cls: str, title: str, icon: str) -> str:
    if stem == "home":
        body = f"""Padding(
        padding: const EdgeInsets.all(24),
        child: Column(
          crossAxisAlignment: CrossAxisAlignment.start,
          children: [
            Text(
              'Welcome to {dart_string(app_name)}',
              style: Theme.of(context).textTheme.headlineSmall,
            ),
            const SizedBox(height: 12),
            Text(
              '{dart_string(tagline(prompt))}',
              style: Theme.of(context).textTheme.bodyLarge,
            ),
          ],
        ),
      )"""
    elif stem == "details":
        body = """ListView.builder(
        itemCount: 10,
        itemBuilder: (context, index) => ListTile(
          leading: const Icon(Icons.circle_outlined),
          title: Text('Item ${index + 1}'),
          subtitle: const Text('Tap to view details'),
        ),
      )"""
    elif stem == "profile":
        body = """const Center(
        child: Column(
          mainAxisSize: MainAxisSize.min,
          children: [
            CircleAvatar(radius: 40, child: Icon(Icons.person, size: 40)),
            SizedBox(height: 16),
            Text('Your profile'),
          ],
        ),
      )"""
    else:
        body = """ListView(
        children: const [
          SwitchListTile(value: false, onChanged: null, title: Text('Dark mode')),
          SwitchListTile(value: true, onChanged: null, title: Text('Notifications')),
          ListTile(leading: Icon(Icons.info_outline), title: Text('About')),
        ],
      )"""
    return f"""import 'package:flutter/material.dart';

class {cls} extends StatelessWidget {{
  const {cls}({{super.key}});

  @override
  Widget build(BuildContext context) {{
    return Scaffold(
      appBar: AppBar(
        leading: const Icon({icon}),
        title: const Text('{title}'),
      ),
      body: {body},
    );
  }}
}}
"""


def _firebase_service_dart() -> str:
    return """import 'package:cloud_firestore/cloud_firestore.dart';
import 'package:firebase_auth/firebase_auth.dart';

class FirebaseService {
  final FirebaseAuth auth = FirebaseAuth.instance;
  final FirebaseFirestore firestore = FirebaseFirestore.instance;

  Stream<User?> get authChanges => auth.authStateChanges();

  Future<UserCredential> signIn(String email, String password) {
    return auth.signInWithEmailAndPassword(email: email, password: password);
  }

  Future<void> signOut() => auth.signOut();

  CollectionReference<Map<String, dynamic>> collection(String name) {
    return firestore.collection(name);
  }
}
"""


def _readme(app_name: str, prompt: str, backend: str, structure: List[str]) -> str:
    files = "\n".join(f"- `{path}`" for path in structure)
    return f"""# {app_name}

{prompt.strip()}

## Backend

{BACKEND_LABELS.get(backend, backend)}. Fill in the placeholder values in the
generated configuration files before running the app.

## Getting started

```bash
flutter pub get
flutter run
```

## Project structure

{files}
"""


def build_fallback_bundle(app_name: str, prompt: str, backend: str) -> ProjectBundle:
    """
    Build the template project for a request.

    Args:
        app_name: App name
        prompt: App description (enhanced or raw)
        backend: firebase | supabase | nodejs

    Returns:
        ProjectBundle with pubspec, entry point, four screens, theme and README
    """
    files: Dict[str, str] = {
        "pubspec.yaml": _pubspec(app_name, backend),
        "lib/main.dart": _main_dart(app_name, backend),
        "lib/theme/app_theme.dart": _theme_dart(),
    }
    for stem, cls, title, icon in SCREENS:
        files[f"lib/screens/{stem}_screen.dart"] = _screen_dart(app_name, prompt, stem, cls, title, icon)
    if backend == "firebase":
        files["lib/services/firebase_service.dart"] = _firebase_service_dart()

    structure = list(files) + ["README.md"]
    readme = _readme(app_name, prompt, backend, structure)
    files["README.md"] = readme
    return ProjectBundle(files=files, structure=structure, readme=readme)
