# src/snackbuilder/scaffold.py
from __future__ import annotations

import json

from snackbuilder.models import FileEntry, FileMap

# Files Snack needs to boot an Expo Router app on web and on a device.
# package.json / app.json are deliberately absent: Snack takes dependencies from
# the payload's "dependencies" map, not from files.

ENTRY_JS = 'export { default } from "expo-router/entry";'

ROOT_LAYOUT_TSX = """\
import { Stack } from "expo-router";
export default function RootLayout() {
  return <Stack screenOptions={{ headerShown: false }} />;
}"""

INDEX_SCREEN_TSX = """\
import { View, Text } from "react-native";
export default function Home() {
  return (
    <View style={{ flex:1, alignItems:"center", justifyContent:"center", backgroundColor:"#fff" }}>
      <Text style={{ fontSize: 22, fontWeight: "700" }}>Expo Router is running</Text>
      <Text style={{ marginTop: 8, fontSize: 14, opacity: 0.7 }}>
        Replace this with your own app/index.tsx
      </Text>
    </View>
  );
}"""

TSCONFIG = {
    "compilerOptions": {
        "target": "esnext",
        "module": "esnext",
        "jsx": "react-jsx",
        "strict": True,
        "baseUrl": ".",
        "paths": {"@/*": ["./*"]},
    }
}

BABEL_CONFIG_JS = """\
module.exports = function(api){
  api.cache(true);
  return {
    presets: ["babel-preset-expo"],
    plugins: [
      require.resolve("expo-router/babel"),
      ["module-resolver", { alias: { "@": "." } }]
    ],
  };
};"""

SCAFFOLD_FILES: dict[str, FileEntry] = {
    # some devices still want App.js present
    "App.js": FileEntry.code(ENTRY_JS),
    "app/_layout.tsx": FileEntry.code(ROOT_LAYOUT_TSX),
    "app/index.tsx": FileEntry.code(INDEX_SCREEN_TSX),
    # "@/..." imports: type checker + transpiler
    "tsconfig.json": FileEntry.code(json.dumps(TSCONFIG, indent=2)),
    "babel.config.js": FileEntry.code(BABEL_CONFIG_JS),
}


def augment(files: FileMap) -> FileMap:
    """
    Return a copy of `files` with any missing scaffold file added.

    Never overwrites caller content; augment(augment(m)) == augment(m).
    """
    out: FileMap = dict(files)
    for path, entry in SCAFFOLD_FILES.items():
        if path not in out:
            out[path] = entry
    return out


with_expo_snack_scaffold = augment
